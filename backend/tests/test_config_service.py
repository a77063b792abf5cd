import pytest

from tillbook.errors import ValidationError
from tillbook.services import config_service
from tillbook.services.config_service import ReportSchedule


def test_get_missing_key_returns_default(store):
    assert config_service.get_config(store, "currency") is None
    assert config_service.get_config(store, "currency", "PLN") == "PLN"


def test_set_config_last_write_wins(store):
    config_service.set_config(store, "currency", "EUR")
    config_service.set_config(store, "currency", "USD")
    assert config_service.get_config(store, "currency") == "USD"


def test_set_config_stringifies_values(store):
    config_service.set_config(store, "report.hour", 21)
    assert config_service.get_config(store, "report.hour") == "21"


@pytest.mark.parametrize("key,value", [("", "x"), ("   ", "x"), ("k" * 200, "x"), ("currency", None)])
def test_set_config_rejects(store, key, value):
    with pytest.raises(ValidationError):
        config_service.set_config(store, key, value)


def test_get_currency_falls_back_to_default(store):
    assert config_service.get_currency(store, "PLN") == "PLN"
    config_service.set_config(store, config_service.KEY_CURRENCY, "")
    assert config_service.get_currency(store, "PLN") == "PLN"
    config_service.set_config(store, config_service.KEY_CURRENCY, "GBP")
    assert config_service.get_currency(store, "PLN") == "GBP"


def test_list_config_masks_token(store):
    config_service.set_many(store, {
        config_service.KEY_TELEGRAM_TOKEN: "123:secret",
        config_service.KEY_TELEGRAM_CHAT_ID: "-1001",
    })

    assert config_service.list_config(store) == {"telegram_chat_id": "-1001", "telegram_token": "***"}
    assert config_service.list_config(store, reveal_sensitive=True)["telegram_token"] == "123:secret"


def test_report_schedule_round_trip(store):
    assert config_service.get_report_schedule(store) is None
    assert config_service.get_report_timezone(store) == "UTC"

    config_service.save_report_schedule(store, ReportSchedule(hour=21, minute=5, timezone="Europe/Warsaw"))

    assert config_service.get_report_schedule(store) == ReportSchedule(21, 5, "Europe/Warsaw")
    assert config_service.get_report_timezone(store) == "Europe/Warsaw"


def test_validate_schedule_defaults_timezone():
    assert config_service.validate_schedule("6", "30", None) == ReportSchedule(6, 30, "UTC")


@pytest.mark.parametrize(
    "hour,minute,tz",
    [(24, 0, "UTC"), (0, -1, "UTC"), ("7.5", 0, "UTC"), (True, 0, "UTC"), (7, 0, "Atlantis/Capital")],
)
def test_validate_schedule_rejects(hour, minute, tz):
    with pytest.raises(ValidationError):
        config_service.validate_schedule(hour, minute, tz)
