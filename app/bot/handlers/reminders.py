import html
import logging

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from app.bot.keyboards import back_to_menu_keyboard
from app.config import get_settings
from app.db.session import SessionLocal
from app.services.notify_service import check_connection, list_due_reminders, send_due_reminders
from app.services.template_service import format_date, format_days_left
from app.whatsapp.client import create_whatsapp_client

from .common import _is_staff, _t
from .menu import _edit_or_send, _show_status_then_menu


router = Router()


async def _reminders_preview_text() -> str:
    settings = get_settings()
    async with SessionLocal() as session:
        due = await list_due_reminders(session)
    if not due:
        return _t(settings.text_reminders_preview_empty)
    lines = [_t(settings.text_reminders_preview_title)]
    for item in due:
        lines.append(
            _t(
                settings.text_reminders_preview_line,
                customer=html.escape(item.customer.name),
                service=html.escape(item.renewal.service or settings.text_date_none),
                expiry=format_date(item.renewal.expiry_date),
                days_left=format_days_left(item.days_left),
                kind=item.kind,
            )
        )
    return "\n".join(lines)


async def _reminders_send_text() -> str:
    settings = get_settings()
    whatsapp = create_whatsapp_client(settings)
    if whatsapp is None:
        return _t(settings.text_reminders_disabled)
    async with SessionLocal() as session:
        sent = await send_due_reminders(session, whatsapp)
    logging.info("Manual reminder run: sent=%s", len(sent))
    if not sent:
        return _t(settings.text_reminders_none)
    return _t(settings.text_reminders_done, count=len(sent))


@router.callback_query(lambda call: call.data == "reminders:preview")
async def reminders_preview(call: CallbackQuery) -> None:
    if not _is_staff(call.from_user.id):
        await call.answer(_t(get_settings().text_no_access_alert), show_alert=True)
        return
    await _edit_or_send(call, await _reminders_preview_text(), reply_markup=back_to_menu_keyboard())
    await call.answer()


@router.callback_query(lambda call: call.data == "reminders:send")
async def reminders_send(call: CallbackQuery) -> None:
    if not _is_staff(call.from_user.id):
        await call.answer(_t(get_settings().text_no_access_alert), show_alert=True)
        return
    await call.answer()
    await _show_status_then_menu(call.bot, call.message.chat.id, await _reminders_send_text())


@router.callback_query(lambda call: call.data == "reminders:check")
async def reminders_check(call: CallbackQuery) -> None:
    settings = get_settings()
    if not _is_staff(call.from_user.id):
        await call.answer(_t(settings.text_no_access_alert), show_alert=True)
        return
    whatsapp = create_whatsapp_client(settings)
    if whatsapp is None:
        text = _t(settings.text_reminders_disabled)
    else:
        error = await check_connection(whatsapp)
        if error is None:
            text = _t(settings.text_whatsapp_ok)
        else:
            text = _t(settings.text_whatsapp_failed, error=html.escape(error))
    await _edit_or_send(call, text, reply_markup=back_to_menu_keyboard())
    await call.answer()


@router.message(Command("reminders"))
async def reminders_command(message: Message) -> None:
    if not _is_staff(message.from_user.id):
        await message.answer(_t(get_settings().text_access_denied))
        return
    await message.answer(await _reminders_preview_text(), reply_markup=back_to_menu_keyboard())


@router.message(Command("send_reminders"))
async def send_reminders_command(message: Message) -> None:
    if not _is_staff(message.from_user.id):
        await message.answer(_t(get_settings().text_access_denied))
        return
    await _show_status_then_menu(message.bot, message.chat.id, await _reminders_send_text())
