import html
import logging
import math

from aiogram import Router
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from app.bot.keyboards import back_to_menu_keyboard, cancel_keyboard, renewal_card_keyboard, renewals_keyboard
from app.bot.states import RenewalSearchState
from app.config import get_settings
from app.db.session import SessionLocal
from app.services.customer_service import get_customer_by_id
from app.services.notify_service import send_reminder
from app.services.renewal_dates import days_until_expiry, utcnow
from app.services.renewal_policy import draft_for_customer, draft_from_renewal, effective_status
from app.services.renewal_rows import STATUS_FILTER_ALL, RenewalRow, filter_rows
from app.services.renewal_service import (
    get_renewal_by_id,
    get_renewal_for_customer,
    list_renewal_rows,
    load_renewal_stats,
    mark_active,
    mark_renewed,
    save_renewal,
)
from app.services.template_service import format_amount, format_date, format_days_left
from app.whatsapp.client import create_whatsapp_client

from .common import _is_cancel, _is_staff, _is_start, _status_label, _t
from .menu import _edit_or_send, _show_start_menu


router = Router()

_PAGE_SIZE = 8
_FILTERS = {STATUS_FILTER_ALL, "active", "expiring", "expired", "renewed"}


def _paginate(rows: list[RenewalRow], page: int) -> tuple[list[RenewalRow], int, int]:
    total_pages = max(1, math.ceil(len(rows) / _PAGE_SIZE))
    page = max(1, min(page, total_pages))
    start = (page - 1) * _PAGE_SIZE
    return rows[start:start + _PAGE_SIZE], page, total_pages


def _row_label(row: RenewalRow) -> str:
    settings = get_settings()
    return _t(
        settings.text_renewal_row,
        customer=row.customer_name,
        service=row.service or settings.text_date_none,
        status=_status_label(row.status),
    )


async def _deny(call: CallbackQuery) -> bool:
    if _is_staff(call.from_user.id):
        return False
    await call.answer(_t(get_settings().text_no_access_alert), show_alert=True)
    return True


def _render_rows(
    rows: list[RenewalRow],
    title: str,
    status_filter: str,
    page: int,
    page_prefix: str | None = None,
    narrowed: bool = False,
):
    settings = get_settings()
    page_rows, page, total_pages = _paginate(rows, page)
    text = title
    if not rows:
        narrowed = narrowed or status_filter != STATUS_FILTER_ALL
        empty = settings.text_renewals_empty_filtered if narrowed else settings.text_renewals_empty
        text = f"{title}\n\n{_t(empty)}"
    markup = renewals_keyboard(
        [(row.customer_id, _row_label(row)) for row in page_rows],
        status_filter,
        page,
        total_pages,
        page_prefix=page_prefix,
    )
    return text, markup


@router.callback_query(lambda call: call.data.startswith("renewals:list:"))
async def renewals_list(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    parts = call.data.split(":")
    status_filter = parts[2] if len(parts) > 2 and parts[2] in _FILTERS else STATUS_FILTER_ALL
    try:
        page = int(parts[3]) if len(parts) > 3 else 1
    except ValueError:
        await call.answer(_t(settings.text_page_invalid), show_alert=True)
        return
    await state.clear()
    async with SessionLocal() as session:
        rows = await list_renewal_rows(session)
    rows = filter_rows(rows, status=status_filter)
    filter_label = settings.text_filter_all if status_filter == STATUS_FILTER_ALL else _status_label(status_filter)
    title = _t(settings.text_renewals_title, filter=filter_label, count=len(rows))
    text, markup = _render_rows(rows, title, status_filter, page)
    await _edit_or_send(call, text, reply_markup=markup)
    await call.answer()


@router.callback_query(lambda call: call.data == "renewals:search")
async def renewals_search(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    await state.set_state(RenewalSearchState.waiting_term)
    await _edit_or_send(call, _t(get_settings().text_renewal_search_prompt), reply_markup=cancel_keyboard())
    await call.answer()


@router.message(RenewalSearchState.waiting_term)
async def renewals_search_term(message: Message, state: FSMContext) -> None:
    settings = get_settings()
    if not _is_staff(message.from_user.id):
        await state.clear()
        await message.answer(_t(settings.text_access_denied))
        return
    if _is_start(message.text) or _is_cancel(message.text):
        await state.clear()
        await _show_start_menu(message)
        return
    term = (message.text or "").strip()
    await state.set_state(None)
    await state.update_data(search_term=term)
    async with SessionLocal() as session:
        rows = await list_renewal_rows(session)
    rows = filter_rows(rows, search=term)
    title = _t(settings.text_renewals_search_title, term=html.escape(term), count=len(rows))
    text, markup = _render_rows(rows, title, STATUS_FILTER_ALL, 1, page_prefix="renewals:find", narrowed=True)
    await message.answer(text, reply_markup=markup)


@router.callback_query(lambda call: call.data.startswith("renewals:find:"))
async def renewals_search_page(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    try:
        page = int(call.data.split(":")[-1])
    except ValueError:
        await call.answer(_t(settings.text_page_invalid), show_alert=True)
        return
    term = (await state.get_data()).get("search_term", "")
    async with SessionLocal() as session:
        rows = await list_renewal_rows(session)
    rows = filter_rows(rows, search=term)
    title = _t(settings.text_renewals_search_title, term=html.escape(term), count=len(rows))
    text, markup = _render_rows(rows, title, STATUS_FILTER_ALL, page, page_prefix="renewals:find", narrowed=True)
    await _edit_or_send(call, text, reply_markup=markup)
    await call.answer()


async def _render_card(call: CallbackQuery, customer_id: int, status_text: str | None = None) -> bool:
    """Show the renewal card. Returns False after answering the callback with an alert."""

    settings = get_settings()
    now = utcnow()
    async with SessionLocal() as session:
        customer = await get_customer_by_id(session, customer_id)
        if customer is None:
            await call.answer(_t(settings.text_customer_not_found), show_alert=True)
            return False
        renewal = await get_renewal_for_customer(session, customer_id)

    if renewal is None:
        draft = draft_for_customer(customer, now.date())
        text = _t(
            settings.text_renewal_card_missing,
            customer=html.escape(customer.name),
            expiry=format_date(draft.expiry_date),
            interval=draft.interval_months,
            base_date=format_date(draft.base_date),
        )
        markup = renewal_card_keyboard(customer_id, None, None)
    else:
        draft = draft_from_renewal(renewal, now.date())
        status = effective_status(renewal.status, renewal.expiry_date, now)
        text = _t(
            settings.text_renewal_card,
            customer=html.escape(customer.name),
            service=html.escape(renewal.service or settings.text_date_none),
            amount=format_amount(renewal.amount),
            expiry=format_date(renewal.expiry_date),
            days_left=format_days_left(days_until_expiry(renewal.expiry_date, now)),
            interval=renewal.interval_months,
            base_date=format_date(draft.base_date),
            reminder_days=renewal.reminder_days,
            status=_status_label(renewal.status),
        )
        if draft.suggested_status and draft.suggested_status != renewal.status:
            text += _t(settings.text_renewal_card_suggested, status=_status_label(draft.suggested_status))
        markup = renewal_card_keyboard(customer_id, renewal.id, status)
    if status_text:
        text = f"{status_text}\n\n{text}"
    await _edit_or_send(call, text, reply_markup=markup)
    return True


@router.callback_query(lambda call: call.data.startswith("renewals:open:"))
async def renewals_open(call: CallbackQuery, state: FSMContext) -> None:
    if await _deny(call):
        return
    await state.clear()
    customer_id = int(call.data.split(":")[-1])
    if await _render_card(call, customer_id):
        await call.answer()


@router.callback_query(lambda call: call.data.startswith("renewals:create:"))
async def renewals_create(call: CallbackQuery) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    customer_id = int(call.data.split(":")[-1])
    async with SessionLocal() as session:
        customer = await get_customer_by_id(session, customer_id)
        if customer is None:
            await call.answer(_t(settings.text_customer_not_found), show_alert=True)
            return
        existing = await get_renewal_for_customer(session, customer_id)
        if existing is None:
            draft = draft_for_customer(customer, utcnow().date())
            renewal = await save_renewal(session, draft.to_payload(), fallback_base_date=customer.created_at)
        else:
            renewal = existing
    logging.info("Renewal created from customer defaults: customer_id=%s renewal_id=%s", customer_id, renewal.id)
    created = await _render_card(
        call,
        customer_id,
        status_text=_t(settings.text_renewal_created, expiry=format_date(renewal.expiry_date)),
    )
    if created:
        await call.answer()


async def _change_status(call: CallbackQuery, renewed: bool) -> None:
    settings = get_settings()
    renewal_id = int(call.data.split(":")[-1])
    async with SessionLocal() as session:
        if renewed:
            renewal = await mark_renewed(session, renewal_id)
        else:
            renewal = await mark_active(session, renewal_id)
    if renewal is None:
        await call.answer(_t(settings.text_renewal_missing_alert), show_alert=True)
        return
    status_text = settings.text_renewal_marked_renewed if renewed else settings.text_renewal_marked_active
    if await _render_card(call, renewal.customer_id, status_text=_t(status_text)):
        await call.answer()


@router.callback_query(lambda call: call.data.startswith("renewals:renewed:"))
async def renewals_mark_renewed(call: CallbackQuery) -> None:
    if await _deny(call):
        return
    await _change_status(call, renewed=True)


@router.callback_query(lambda call: call.data.startswith("renewals:active:"))
async def renewals_mark_active(call: CallbackQuery) -> None:
    if await _deny(call):
        return
    await _change_status(call, renewed=False)


@router.callback_query(lambda call: call.data.startswith("renewals:interval:"))
async def renewals_interval(call: CallbackQuery) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    _, _, renewal_id_raw, months_raw = call.data.split(":")
    async with SessionLocal() as session:
        renewal = await get_renewal_by_id(session, int(renewal_id_raw))
        if renewal is None:
            await call.answer(_t(settings.text_renewal_missing_alert), show_alert=True)
            return
        draft = draft_from_renewal(renewal, utcnow().date()).with_interval(months_raw)
        renewal = await save_renewal(session, draft.to_payload(), renewal_id=renewal.id)
    shown = await _render_card(
        call,
        renewal.customer_id,
        status_text=_t(
            settings.text_renewal_interval_updated,
            interval=renewal.interval_months,
            expiry=format_date(renewal.expiry_date),
        ),
    )
    if shown:
        await call.answer()


@router.callback_query(lambda call: call.data.startswith("renewals:remind:"))
async def renewals_remind(call: CallbackQuery) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    whatsapp = create_whatsapp_client(settings)
    if whatsapp is None:
        await call.answer(_t(settings.text_reminders_disabled), show_alert=True)
        return
    renewal_id = int(call.data.split(":")[-1])
    async with SessionLocal() as session:
        renewal = await get_renewal_by_id(session, renewal_id)
        if renewal is None:
            await call.answer(_t(settings.text_renewal_missing_alert), show_alert=True)
            return
        customer = await get_customer_by_id(session, renewal.customer_id)
        try:
            item = await send_reminder(session, whatsapp, renewal, customer)
        except ValueError:
            await call.answer(_t(settings.text_reminder_no_phone), show_alert=True)
            return
        except RuntimeError as exc:
            status_text = _t(settings.text_reminder_failed, error=html.escape(str(exc)))
        else:
            status_text = _t(settings.text_reminder_sent, recipient=html.escape(item.recipient))
    if await _render_card(call, renewal.customer_id, status_text=status_text):
        await call.answer()


@router.callback_query(lambda call: call.data == "renewals:stats")
async def renewals_stats(call: CallbackQuery) -> None:
    if await _deny(call):
        return
    settings = get_settings()
    async with SessionLocal() as session:
        stats = await load_renewal_stats(session)
    await _edit_or_send(call, _t(settings.text_stats, **stats), reply_markup=back_to_menu_keyboard())
    await call.answer()
