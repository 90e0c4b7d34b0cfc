from aiogram.fsm.state import State, StatesGroup


class RenewalSearchState(StatesGroup):
    waiting_term = State()


class RenewalEditState(StatesGroup):
    waiting_value = State()
