import logging

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from app.bot.keyboards import main_menu
from app.config import get_settings

from .common import _is_staff, _t


router = Router()


async def _edit_or_send(call: CallbackQuery, text: str, reply_markup=None, **kwargs) -> None:
    try:
        await call.message.edit_text(text, reply_markup=reply_markup, **kwargs)
    except Exception as exc:
        logging.debug("Edit failed, sending new message: %s", exc)
        await call.message.answer(text, reply_markup=reply_markup, **kwargs)


async def _show_start_menu(message: Message) -> None:
    settings = get_settings()
    await message.answer(
        _t(settings.text_start, business_name=settings.business_name),
        reply_markup=main_menu(),
    )


async def _show_status_then_menu(bot, chat_id: int, status_text: str) -> None:
    settings = get_settings()
    await bot.send_message(chat_id=chat_id, text=status_text)
    await bot.send_message(chat_id=chat_id, text=_t(settings.text_main_menu_prompt), reply_markup=main_menu())


@router.message(CommandStart())
async def start(message: Message, state: FSMContext) -> None:
    await state.clear()
    settings = get_settings()
    if not _is_staff(message.from_user.id):
        logging.info("Access denied for telegram_id=%s", message.from_user.id)
        await message.answer(_t(settings.text_access_denied))
        return
    await _show_start_menu(message)


@router.message(Command("ping"))
async def ping(message: Message) -> None:
    await message.answer(_t(get_settings().text_ping))


@router.callback_query(lambda call: call.data in {"menu", "cancel"})
async def menu_callback(call: CallbackQuery, state: FSMContext) -> None:
    settings = get_settings()
    if not _is_staff(call.from_user.id):
        await call.answer(_t(settings.text_no_access_alert), show_alert=True)
        return
    await state.clear()
    text = _t(settings.text_main_menu_prompt)
    if call.data == "cancel":
        text = f"{_t(settings.text_cancelled)}\n\n{text}"
    await _edit_or_send(call, text, reply_markup=main_menu())
    await call.answer()
