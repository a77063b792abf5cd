from __future__ import annotations

from dataclasses import dataclass

from ..errors import ValidationError
from ..models import ConfigEntry
from ..store import LedgerStore
from ..time_utils import get_zone
from ..validation import coerce_int


KEY_CURRENCY = "currency"
KEY_TELEGRAM_TOKEN = "telegram_token"
KEY_TELEGRAM_CHAT_ID = "telegram_chat_id"
KEY_REPORT_HOUR = "report.hour"
KEY_REPORT_MINUTE = "report.minute"
KEY_REPORT_TIMEZONE = "report.timezone"

# Keys whose values are never echoed back through the API
SENSITIVE_KEYS = {KEY_TELEGRAM_TOKEN}

DEFAULT_REPORT_TIMEZONE = "UTC"

MAX_KEY_LENGTH = 128


@dataclass(frozen=True)
class ReportSchedule:
    hour: int
    minute: int
    timezone: str

    def to_dict(self) -> dict:
        return {"hour": self.hour, "minute": self.minute, "timezone": self.timezone}


def get_config(store: LedgerStore, key: str, default: str | None = None) -> str | None:
    entry = store.session.get(ConfigEntry, key)
    if entry is None or entry.value == "":
        return default
    return entry.value


def _set_inner(session, key: str, value: str) -> None:
    entry = session.get(ConfigEntry, key)
    if entry is None:
        session.add(ConfigEntry(key=key, value=value))
    else:
        entry.value = value


def set_config(store: LedgerStore, key: str, value) -> None:
    """Upsert a config value (last write wins)."""
    key = (key or "").strip()
    if not key:
        raise ValidationError("key is required")
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(f"key exceeds max length {MAX_KEY_LENGTH}")
    if value is None:
        raise ValidationError("value cannot be null")

    with store.unit_of_work() as session:
        _set_inner(session, key, str(value))


def set_many(store: LedgerStore, values: dict[str, str]) -> None:
    """Upsert several keys in one unit of work."""
    with store.unit_of_work() as session:
        for key, value in values.items():
            _set_inner(session, key, str(value))


def list_config(store: LedgerStore, *, reveal_sensitive: bool = False) -> dict[str, str]:
    rows = store.session.query(ConfigEntry).order_by(ConfigEntry.key.asc()).all()
    out = {}
    for row in rows:
        if row.key in SENSITIVE_KEYS and not reveal_sensitive:
            out[row.key] = "***"
        else:
            out[row.key] = row.value
    return out


def get_currency(store: LedgerStore, default: str) -> str:
    return get_config(store, KEY_CURRENCY, default) or default


def get_report_timezone(store: LedgerStore) -> str:
    return get_config(store, KEY_REPORT_TIMEZONE, DEFAULT_REPORT_TIMEZONE)


def validate_schedule(hour, minute, timezone: str | None) -> ReportSchedule:
    hour = coerce_int("hour", hour)
    minute = coerce_int("minute", minute)
    if not 0 <= hour <= 23:
        raise ValidationError("hour must be between 0 and 23")
    if not 0 <= minute <= 59:
        raise ValidationError("minute must be between 0 and 59")

    timezone = (timezone or DEFAULT_REPORT_TIMEZONE).strip()
    try:
        get_zone(timezone)
    except ValueError as exc:
        raise ValidationError(str(exc))
    return ReportSchedule(hour=hour, minute=minute, timezone=timezone)


def get_report_schedule(store: LedgerStore) -> ReportSchedule | None:
    """The persisted daily report schedule, or None if never configured."""
    hour = get_config(store, KEY_REPORT_HOUR)
    minute = get_config(store, KEY_REPORT_MINUTE)
    if hour is None or minute is None:
        return None
    return validate_schedule(hour, minute, get_report_timezone(store))


def save_report_schedule(store: LedgerStore, schedule: ReportSchedule) -> None:
    set_many(store, {
        KEY_REPORT_HOUR: str(schedule.hour),
        KEY_REPORT_MINUTE: str(schedule.minute),
        KEY_REPORT_TIMEZONE: schedule.timezone,
    })
