from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from app.config import get_settings
from app.services.renewal_dates import STATUS_RENEWED
from app.services.renewal_policy import INTERVAL_MONTHS


def _t(value: str, **kwargs) -> str:
    text = value.replace("\\n", "\n")
    return text.format(**kwargs) if kwargs else text


def main_menu() -> InlineKeyboardMarkup:
    settings = get_settings()
    rows = [
        [InlineKeyboardButton(text=_t(settings.btn_renewals), callback_data="renewals:list:all:1")],
        [InlineKeyboardButton(text=_t(settings.btn_search), callback_data="renewals:search")],
        [InlineKeyboardButton(text=_t(settings.btn_stats), callback_data="renewals:stats")],
        [
            InlineKeyboardButton(text=_t(settings.btn_reminders_preview), callback_data="reminders:preview"),
            InlineKeyboardButton(text=_t(settings.btn_reminders_send), callback_data="reminders:send"),
        ],
        [InlineKeyboardButton(text=_t(settings.btn_whatsapp_check), callback_data="reminders:check")],
    ]
    return InlineKeyboardMarkup(inline_keyboard=rows)


def _filter_buttons(active: str) -> list[InlineKeyboardButton]:
    settings = get_settings()
    filters = [
        ("all", settings.btn_filter_all),
        ("active", settings.btn_filter_active),
        ("expiring", settings.btn_filter_expiring),
        ("expired", settings.btn_filter_expired),
        ("renewed", settings.btn_filter_renewed),
    ]
    buttons = []
    for value, label in filters:
        text = _t(label)
        if value == active:
            text = f"• {text}"
        buttons.append(InlineKeyboardButton(text=text, callback_data=f"renewals:list:{value}:1"))
    return buttons


def renewals_keyboard(
    row_buttons: list[tuple[int, str]],
    status_filter: str,
    page: int,
    total_pages: int,
    page_prefix: str | None = None,
) -> InlineKeyboardMarkup:
    """
    row_buttons: list of (customer_id, label)
    """
    settings = get_settings()
    page_prefix = page_prefix or f"renewals:list:{status_filter}"
    filters = _filter_buttons(status_filter)
    rows = [filters[:3], filters[3:]]
    for customer_id, label in row_buttons:
        rows.append([InlineKeyboardButton(text=label, callback_data=f"renewals:open:{customer_id}")])
    nav = []
    if page > 1:
        nav.append(InlineKeyboardButton(text=_t(settings.btn_prev), callback_data=f"{page_prefix}:{page - 1}"))
    if page < total_pages:
        nav.append(InlineKeyboardButton(text=_t(settings.btn_next), callback_data=f"{page_prefix}:{page + 1}"))
    if nav:
        rows.append(nav)
    rows.append([InlineKeyboardButton(text=_t(settings.btn_back_to_menu), callback_data="menu")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def renewal_card_keyboard(customer_id: int, renewal_id: int | None, status: str | None) -> InlineKeyboardMarkup:
    settings = get_settings()
    rows = []
    if renewal_id is None:
        rows.append(
            [InlineKeyboardButton(text=_t(settings.btn_create_renewal), callback_data=f"renewals:create:{customer_id}")]
        )
    else:
        if status == STATUS_RENEWED:
            rows.append(
                [InlineKeyboardButton(text=_t(settings.btn_mark_active), callback_data=f"renewals:active:{renewal_id}")]
            )
        else:
            rows.append(
                [InlineKeyboardButton(text=_t(settings.btn_mark_renewed), callback_data=f"renewals:renewed:{renewal_id}")]
            )
        interval_buttons = [
            InlineKeyboardButton(
                text=_t(getattr(settings, f"btn_interval_{months}")),
                callback_data=f"renewals:interval:{renewal_id}:{months}",
            )
            for months in INTERVAL_MONTHS.values()
        ]
        rows.append(interval_buttons[:2])
        rows.append(interval_buttons[2:])
        rows.append(
            [
                InlineKeyboardButton(text=_t(settings.btn_edit_renewal), callback_data=f"renewals:edit:{renewal_id}"),
                InlineKeyboardButton(text=_t(settings.btn_send_reminder), callback_data=f"renewals:remind:{renewal_id}"),
            ]
        )
    rows.append([InlineKeyboardButton(text=_t(settings.btn_back), callback_data="renewals:list:all:1")])
    rows.append([InlineKeyboardButton(text=_t(settings.btn_back_to_menu), callback_data="menu")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def cancel_keyboard() -> InlineKeyboardMarkup:
    settings = get_settings()
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=_t(settings.btn_cancel), callback_data="cancel")],
        ]
    )


def back_to_menu_keyboard() -> InlineKeyboardMarkup:
    settings = get_settings()
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=_t(settings.btn_back_to_menu), callback_data="menu")],
        ]
    )


_EDIT_FIELDS = (
    ("service", "btn_edit_service"),
    ("amount", "btn_edit_amount"),
    ("expiry", "btn_edit_expiry"),
    ("base_date", "btn_edit_base_date"),
    ("reminder_days", "btn_edit_reminder_days"),
    ("notes", "btn_edit_notes"),
    ("customer", "btn_edit_customer"),
)


def renewal_edit_keyboard() -> InlineKeyboardMarkup:
    settings = get_settings()
    buttons = [
        InlineKeyboardButton(text=_t(getattr(settings, label)), callback_data=f"renewals:field:{field}")
        for field, label in _EDIT_FIELDS
    ]
    buttons.append(InlineKeyboardButton(text=_t(settings.btn_edit_status), callback_data="renewals:statuspick"))
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    rows.append([InlineKeyboardButton(text=_t(settings.btn_save), callback_data="renewals:save")])
    rows.append([InlineKeyboardButton(text=_t(settings.btn_back), callback_data="renewals:editcancel")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def status_choice_keyboard(labels: dict[str, str]) -> InlineKeyboardMarkup:
    """
    labels: status -> button text
    """
    settings = get_settings()
    rows = [
        [InlineKeyboardButton(text=label, callback_data=f"renewals:setstatus:{status}")]
        for status, label in labels.items()
    ]
    rows.append([InlineKeyboardButton(text=_t(settings.btn_back), callback_data="renewals:editview")])
    return InlineKeyboardMarkup(inline_keyboard=rows)


def edit_value_keyboard() -> InlineKeyboardMarkup:
    settings = get_settings()
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text=_t(settings.btn_back), callback_data="renewals:editview")],
        ]
    )
