import html
import logging

from aiogram import Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from app.bot.keyboards import edit_value_keyboard, renewal_edit_keyboard, status_choice_keyboard
from app.bot.states import RenewalEditState
from app.config import get_settings
from app.db.session import SessionLocal
from app.services.customer_service import get_customer_by_id, get_customer_by_name
from app.services.renewal_dates import RENEWAL_STATUSES, utcnow
from app.services.renewal_policy import (
    DATE_EDIT_FIELDS,
    NUMBER_EDIT_FIELDS,
    TEXT_EDIT_FIELDS,
    RenewalDraft,
    apply_customer,
    apply_edit,
    draft_from_renewal,
)
from app.services.renewal_service import get_renewal_by_id, save_renewal
from app.services.template_service import format_amount, format_date

from .common import _is_cancel, _is_start, _is_staff, _status_label, _t
from .menu import _edit_or_send, _show_start_menu
from .renewals import _deny, _render_card


router = Router()

_FIELDS = DATE_EDIT_FIELDS + NUMBER_EDIT_FIELDS + TEXT_EDIT_FIELDS + ("customer",)


def _edit_text(draft: RenewalDraft, customer_name: str) -> str:
    settings = get_settings()
    text = _t(
        settings.text_renewal_edit,
        customer=html.escape(customer_name),
        service=html.escape(draft.service or settings.text_date_none),
        amount=format_amount(draft.amount),
        expiry=format_date(draft.expiry_date),
        interval=draft.interval_months,
        base_date=format_date(draft.base_date),
        reminder_days=draft.reminder_days,
        notes=html.escape(draft.notes or settings.text_date_none),
        status=_status_label(draft.status),
    )
    if draft.suggested_status and draft.suggested_status != draft.status:
        text += _t(settings.text_renewal_card_suggested, status=_status_label(draft.suggested_status))
    return text


async def _load_draft(state: FSMContext) -> tuple[int | None, RenewalDraft | None, str]:
    data = await state.get_data()
    if "edit_draft" not in data:
        return None, None, ""
    return data["edit_renewal_id"], RenewalDraft.from_state(data["edit_draft"]), data.get("edit_customer_name", "")


async def _store_draft(state: FSMContext, draft: RenewalDraft, customer_name: str) -> None:
    await state.update_data(edit_draft=draft.to_state(), edit_customer_name=customer_name)


async def _expired(call: CallbackQuery, state: FSMContext) -> None:
    await state.clear()
    await call.answer(_t(get_settings().text_edit_expired), show_alert=True)


@router.callback_query(lambda call: call.data.startswith("renewals:edit:"))
async def renewal_edit_start(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    renewal_id = int(call.data.split(":")[-1])
    async with SessionLocal() as session:
        renewal = await get_renewal_by_id(session, renewal_id)
        if renewal is None:
            await call.answer(_t(settings.text_renewal_missing_alert), show_alert=True)
            return
        customer = await get_customer_by_id(session, renewal.customer_id)
    draft = draft_from_renewal(renewal, utcnow().date())
    customer_name = customer.name if customer else ""
    await state.clear()
    await state.update_data(edit_renewal_id=renewal_id)
    await _store_draft(state, draft, customer_name)
    await _edit_or_send(call, _edit_text(draft, customer_name), reply_markup=renewal_edit_keyboard())
    await call.answer()


@router.callback_query(lambda call: call.data == "renewals:editview")
async def renewal_edit_view(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    _, draft, customer_name = await _load_draft(state)
    if draft is None:
        await _expired(call, state)
        return
    await state.set_state(None)
    await _edit_or_send(call, _edit_text(draft, customer_name), reply_markup=renewal_edit_keyboard())
    await call.answer()


@router.callback_query(lambda call: call.data.startswith("renewals:field:"))
async def renewal_edit_field(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    field = call.data.split(":")[-1]
    if field not in _FIELDS:
        await call.answer()
        return
    _, draft, _ = await _load_draft(state)
    if draft is None:
        await _expired(call, state)
        return
    await state.set_state(RenewalEditState.waiting_value)
    await state.update_data(edit_field=field)
    prompt = getattr(get_settings(), f"text_edit_prompt_{field}")
    await _edit_or_send(call, _t(prompt), reply_markup=edit_value_keyboard())
    await call.answer()


@router.message(RenewalEditState.waiting_value)
async def renewal_edit_value(message: Message, state: FSMContext) -> None:
    settings = get_settings()
    if not _is_staff(message.from_user.id):
        await state.clear()
        await message.answer(_t(settings.text_access_denied))
        return
    if _is_start(message.text) or _is_cancel(message.text):
        await state.clear()
        await _show_start_menu(message)
        return
    _, draft, customer_name = await _load_draft(state)
    if draft is None:
        await state.clear()
        await message.answer(_t(settings.text_edit_expired))
        return
    field = (await state.get_data()).get("edit_field")
    value = (message.text or "").strip()

    if field == "customer":
        async with SessionLocal() as session:
            customer = await get_customer_by_name(session, value)
        if customer is None:
            await message.answer(
                _t(settings.text_edit_customer_not_found, name=html.escape(value)),
                reply_markup=edit_value_keyboard(),
            )
            return
        draft = apply_customer(draft, customer)
        customer_name = customer.name
    else:
        try:
            draft = apply_edit(draft, field, value)
        except ValueError:
            error = settings.text_edit_invalid_date if field in DATE_EDIT_FIELDS else settings.text_edit_invalid_number
            await message.answer(_t(error), reply_markup=edit_value_keyboard())
            return

    await state.set_state(None)
    await _store_draft(state, draft, customer_name)
    await message.answer(_edit_text(draft, customer_name), reply_markup=renewal_edit_keyboard())


@router.callback_query(lambda call: call.data == "renewals:statuspick")
async def renewal_edit_status_pick(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    labels = {status: _status_label(status) for status in RENEWAL_STATUSES}
    await _edit_or_send(call, _t(get_settings().text_edit_status_prompt), reply_markup=status_choice_keyboard(labels))
    await call.answer()


@router.callback_query(lambda call: call.data.startswith("renewals:setstatus:"))
async def renewal_edit_status(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    _, draft, customer_name = await _load_draft(state)
    if draft is None:
        await _expired(call, state)
        return
    try:
        draft = draft.with_status(call.data.split(":")[-1])
    except ValueError:
        await call.answer()
        return
    await _store_draft(state, draft, customer_name)
    await _edit_or_send(call, _edit_text(draft, customer_name), reply_markup=renewal_edit_keyboard())
    await call.answer()


@router.callback_query(lambda call: call.data == "renewals:save")
async def renewal_edit_save(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    renewal_id, draft, _ = await _load_draft(state)
    if draft is None:
        await _expired(call, state)
        return
    async with SessionLocal() as session:
        renewal = await save_renewal(session, draft.to_payload(), renewal_id=renewal_id)
    await state.clear()
    if renewal is None:
        await call.answer(_t(settings.text_renewal_missing_alert), show_alert=True)
        return
    logging.info("Renewal edited: id=%s by telegram_id=%s", renewal.id, call.from_user.id)
    if await _render_card(call, renewal.customer_id, status_text=_t(settings.text_renewal_saved)):
        await call.answer()


@router.callback_query(lambda call: call.data == "renewals:editcancel")
async def renewal_edit_cancel(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    renewal_id, _, _ = await _load_draft(state)
    await state.clear()
    customer_id = None
    if renewal_id is not None:
        async with SessionLocal() as session:
            renewal = await get_renewal_by_id(session, renewal_id)
        customer_id = renewal.customer_id if renewal else None
    if customer_id is None:
        await call.answer(_t(get_settings().text_edit_expired), show_alert=True)
        return
    if await _render_card(call, customer_id):
        await call.answer()
