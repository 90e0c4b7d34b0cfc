from app.config import get_settings
from app.services.renewal_dates import STATUS_ACTIVE, STATUS_EXPIRED, STATUS_EXPIRING, STATUS_RENEWED


_CANCEL_TOKENS = {"/cancel", "cancel", "stop"}


def _t(value: str, **kwargs) -> str:
    text = value.replace("\\n", "\n")
    return text.format(**kwargs) if kwargs else text


def _is_staff(user_id: int) -> bool:
    return get_settings().is_staff(user_id)


def _is_cancel(text: str | None) -> bool:
    return (text or "").strip().lower() in _CANCEL_TOKENS


def _is_start(text: str | None) -> bool:
    return (text or "").strip().lower() == "/start"


def _status_label(status: str) -> str:
    settings = get_settings()
    labels = {
        STATUS_ACTIVE: settings.text_status_active,
        STATUS_EXPIRING: settings.text_status_expiring,
        STATUS_EXPIRED: settings.text_status_expired,
        STATUS_RENEWED: settings.text_status_renewed,
    }
    return _t(labels.get(status, status))
