from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    bot_token: str
    database_url: str = "sqlite+aiosqlite:///./renewals.db"
    owner_telegram_id: int
    admin_ids: Optional[str] = None

    whatsapp_api_url: str = "https://graph.facebook.com/v19.0"
    whatsapp_token: Optional[str] = None
    whatsapp_phone_number_id: Optional[str] = None
    whatsapp_max_retries: int = 3
    whatsapp_timeout_seconds: float = 15.0

    log_level: str = "INFO"

    auto_reminders: bool = True
    reminder_interval_seconds: int = 86400
    urgent_reminder_days: int = 7

    business_name: str = "VasifyTech"
    business_phone: str = ""
    renewal_url: str = ""
    currency_symbol: str = "₹"
    date_format: str = "%d %b %Y"

    # ─── Message templates ────────────────────────────────────────
    template_reminder: str = (
        "Hi {customer_name}, your {service_name} service will expire on {expiry_date}. "
        "Please renew to avoid service interruption. Amount: {amount}. Contact us for renewal."
    )
    template_urgent: str = (
        "Dear {customer_name}, your {service_name} service expires in {days_left} days on {expiry_date}. "
        "Please renew immediately to avoid service disruption. Renewal amount: {amount}."
    )
    template_expired: str = (
        "Hi {customer_name}, your {service_name} service has expired on {expiry_date}. "
        "Please contact us immediately to renew and restore your service. Amount due: {amount}."
    )

    # ─── Main screen ──────────────────────────────────────────────
    text_start: str = (
        "👋 <b>{business_name} renewals</b>\\n\\n"
        "Track service renewals, see what is expiring and send reminders."
    )
    text_main_menu_prompt: str = "Choose an action:"
    text_access_denied: str = "🔒 No access. Ask the owner to add you."
    text_no_access_alert: str = "No access"
    text_ping: str = "pong"
    text_cancelled: str = "👌 Cancelled"

    # ─── Renewal list ─────────────────────────────────────────────
    text_renewals_title: str = "🔁 <b>Renewals</b> · {filter}\\n<i>{count} customer(s)</i>"
    text_renewals_search_title: str = "🔍 <b>Search:</b> {term}\\n<i>{count} customer(s)</i>"
    text_renewals_empty: str = "📭 No renewals found"
    text_renewals_empty_filtered: str = "📭 No renewals found\\n\\n<i>Try adjusting your search or filters</i>"
    text_renewal_search_prompt: str = "🔍 <b>Search renewals</b>\\n\\n<i>Customer name or service</i>"
    text_renewal_row: str = "{customer} · {service} · {status}"
    text_page_invalid: str = "Invalid page"
    text_filter_all: str = "all"

    # ─── Renewal card ─────────────────────────────────────────────
    text_renewal_card: str = (
        "👤 <b>{customer}</b>\\n\\n"
        "📦 Service: <b>{service}</b>\\n"
        "💵 Amount: <b>{amount}</b>\\n"
        "📅 Expires: <b>{expiry}</b> ({days_left})\\n"
        "🔁 Interval: <b>{interval} month(s)</b> from {base_date}\\n"
        "🔔 Reminder: {reminder_days} days before\\n"
        "🏷 Status: <b>{status}</b>"
    )
    text_renewal_card_suggested: str = "\\n💡 Auto-suggested: <b>{status}</b>"
    text_renewal_card_missing: str = (
        "👤 <b>{customer}</b>\\n\\n"
        "No renewal record yet.\\n"
        "Default expiry: <b>{expiry}</b> ({interval} month(s) from {base_date})"
    )
    text_renewal_missing_alert: str = "Create a renewal record first."
    text_customer_not_found: str = "❌ Customer not found"
    text_renewal_created: str = "✅ Renewal created · expires {expiry}"
    text_renewal_marked_renewed: str = "✅ Marked as renewed"
    text_renewal_marked_active: str = "✅ Marked as active"
    text_renewal_interval_updated: str = "✅ Interval: {interval} month(s) · expires {expiry}"

    # ─── Renewal edit ─────────────────────────────────────────────
    text_renewal_edit: str = (
        "✏️ <b>Editing renewal</b> · {customer}\\n\\n"
        "📦 Service: <b>{service}</b>\\n"
        "💵 Amount: <b>{amount}</b>\\n"
        "📅 Expires: <b>{expiry}</b>\\n"
        "🔁 Interval: <b>{interval} month(s)</b> from {base_date}\\n"
        "🔔 Reminder: {reminder_days} days before\\n"
        "📝 Notes: {notes}\\n"
        "🏷 Status: <b>{status}</b>"
    )
    text_edit_prompt_service: str = "📦 Send the service name"
    text_edit_prompt_amount: str = "💵 Send the renewal amount"
    text_edit_prompt_expiry: str = "📅 Send the expiry date (YYYY-MM-DD)"
    text_edit_prompt_base_date: str = "🔁 Send the base date (YYYY-MM-DD). The expiry is recomputed from it."
    text_edit_prompt_reminder_days: str = "🔔 How many days before expiry should the reminder go out?"
    text_edit_prompt_notes: str = "📝 Send the notes"
    text_edit_prompt_customer: str = "👤 Send the customer name"
    text_edit_status_prompt: str = "🏷 Choose a status"
    text_edit_invalid_date: str = "❌ Not a date. Use YYYY-MM-DD."
    text_edit_invalid_number: str = "❌ Not a valid number."
    text_edit_customer_not_found: str = "❌ No customer named <b>{name}</b>"
    text_edit_expired: str = "Edit session expired, open the renewal again."
    text_renewal_saved: str = "✅ Renewal saved"

    # ─── Days left ────────────────────────────────────────────────
    text_days_remaining: str = "{days} days remaining"
    text_expires_today: str = "Expires today"
    text_expired_days_ago: str = "Expired {days} days ago"
    text_date_none: str = "—"

    # ─── Status labels ────────────────────────────────────────────
    text_status_active: str = "🟢 Active"
    text_status_expiring: str = "🟡 Expiring Soon"
    text_status_expired: str = "🔴 Expired"
    text_status_renewed: str = "🔵 Renewed"

    # ─── Statistics ───────────────────────────────────────────────
    text_stats: str = (
        "📊 <b>Renewal overview</b>\\n\\n"
        "Customers: <b>{total}</b>\\n"
        "Upcoming (30 days): <b>{upcoming}</b>\\n"
        "Expired: <b>{expired}</b>\\n"
        "Renewed this month: <b>{renewed_this_month}</b>"
    )

    # ─── Reminders ────────────────────────────────────────────────
    text_reminders_preview_title: str = "🔔 <b>Due reminders</b>"
    text_reminders_preview_line: str = "• <b>{customer}</b> · {service} · {expiry} · {days_left} · {kind}"
    text_reminders_preview_empty: str = "✅ No reminders are due"
    text_reminders_done: str = "🔔 Reminders sent: <b>{count}</b>"
    text_reminders_none: str = "✅ No reminders were sent"
    text_reminders_disabled: str = "⚠️ WhatsApp is not configured"
    text_reminder_sent: str = "📨 Reminder sent to {recipient}"
    text_reminder_no_phone: str = "Customer has no phone number"
    text_reminder_failed: str = "❌ Reminder failed: {error}"
    text_whatsapp_ok: str = "✅ WhatsApp API is reachable"
    text_whatsapp_failed: str = "❌ WhatsApp check failed: {error}"

    # ─── Buttons ──────────────────────────────────────────────────
    btn_renewals: str = "🔁 Renewals"
    btn_search: str = "🔍 Search"
    btn_stats: str = "📊 Overview"
    btn_reminders_preview: str = "👀 Due reminders"
    btn_reminders_send: str = "📨 Send reminders"
    btn_filter_all: str = "All"
    btn_filter_active: str = "Active"
    btn_filter_expiring: str = "Expiring"
    btn_filter_expired: str = "Expired"
    btn_filter_renewed: str = "Renewed"
    btn_mark_renewed: str = "✅ Mark renewed"
    btn_mark_active: str = "↩️ Mark active"
    btn_edit_renewal: str = "✏️ Edit"
    btn_send_reminder: str = "📨 Send reminder"
    btn_whatsapp_check: str = "🔌 Test WhatsApp"
    btn_edit_service: str = "Service"
    btn_edit_amount: str = "Amount"
    btn_edit_expiry: str = "Expiry date"
    btn_edit_base_date: str = "Base date"
    btn_edit_reminder_days: str = "Reminder days"
    btn_edit_notes: str = "Notes"
    btn_edit_customer: str = "Customer"
    btn_edit_status: str = "Status"
    btn_save: str = "💾 Save"
    btn_create_renewal: str = "➕ Create renewal"
    btn_interval_1: str = "Monthly"
    btn_interval_3: str = "Quarterly"
    btn_interval_6: str = "Half-yearly"
    btn_interval_12: str = "Yearly"
    btn_back: str = "← Back"
    btn_back_to_menu: str = "← Menu"
    btn_cancel: str = "✕ Cancel"
    btn_prev: str = "←"
    btn_next: str = "→"

    @property
    def admin_id_set(self) -> set[int]:
        if not self.admin_ids:
            return set()
        return {int(value.strip()) for value in self.admin_ids.split(",") if value.strip()}

    @property
    def whatsapp_enabled(self) -> bool:
        return bool(self.whatsapp_token and self.whatsapp_phone_number_id)

    def template_for(self, kind: str) -> str:
        return getattr(self, f"template_{kind}")

    def is_staff(self, telegram_id: int) -> bool:
        return telegram_id == self.owner_telegram_id or telegram_id in self.admin_id_set


@lru_cache
def get_settings() -> Settings:
    return Settings()
