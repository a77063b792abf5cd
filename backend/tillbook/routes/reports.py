from flask import Blueprint, current_app, request

from ..errors import NotificationFailure
from ..extensions import get_notifier, get_scheduler, get_store
from ..services import config_service, reporting_service, scheduler_service
from ..time_utils import to_utc_z


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/daily")
def daily_report():
    store = get_store()
    date = request.args.get("date")
    tz_name = request.args.get("tz") or config_service.get_report_timezone(store)
    return reporting_service.daily_report(store, date, tz_name=tz_name)


@reports_bp.get("/range")
def range_report():
    store = get_store()
    tz_name = request.args.get("tz") or config_service.get_report_timezone(store)
    return reporting_service.period_report(
        store,
        request.args.get("start"),
        request.args.get("end"),
        tz_name=tz_name,
    )


@reports_bp.get("/schedule")
def get_schedule():
    schedule = config_service.get_report_schedule(get_store())
    scheduler = get_scheduler()
    return {
        "schedule": schedule.to_dict() if schedule else None,
        "armed": bool(scheduler and scheduler.is_armed),
        "next_run_at": to_utc_z(scheduler.next_fire_at) if scheduler else None,
    }


@reports_bp.put("/schedule")
def set_schedule():
    """Body: {"hour": 0-23, "minute": 0-59, "timezone": "Europe/Warsaw"}"""
    data = request.get_json(silent=True) or {}
    scheduler = get_scheduler()
    schedule = scheduler_service.set_schedule(
        get_store(),
        scheduler,
        hour=data.get("hour"),
        minute=data.get("minute"),
        timezone_name=data.get("timezone"),
    )
    return {
        "schedule": schedule.to_dict(),
        "armed": bool(scheduler and scheduler.is_armed),
        "next_run_at": to_utc_z(scheduler.next_fire_at) if scheduler else None,
    }


@reports_bp.post("/send")
def send_now():
    """Send the daily summary immediately; delivery failures are returned as 502."""
    data = request.get_json(silent=True) or {}
    try:
        result = scheduler_service.send_report_now(
            get_store(),
            get_notifier(),
            default_currency=current_app.config["DEFAULT_CURRENCY"],
            day=data.get("date"),
            logger=current_app.logger,
        )
    except NotificationFailure as e:
        return e.to_dict(), e.status_code
    return {"sent": True, **result}
