# Overview: Daily report timer and the job it fires (aggregate, format, notify).

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable

from ..errors import NotificationFailure
from ..store import LedgerStore
from ..time_utils import get_zone, local_today, utcnow
from . import config_service, reporting_service
from .config_service import ReportSchedule
from .notifier import Notifier
"""
Report Scheduler State Machine (authoritative)

    IDLE --start()--> ARMED --timer--> FIRING --re-arm--> ARMED
      ^                 |                                   |
      +-----stop()------+-----------------------------------+

- start()/update_schedule() cancel any armed timer and arm a fresh one; the
  last call wins and at most one timer is live per scheduler.
- Each firing hands the job to its own daemon thread and re-arms immediately;
  the timer never waits for delivery.
- Job failures (including NotificationFailure) are logged, never raised into
  the timer, so the next firing still happens.
- A timer armed under an older schedule carries a stale generation number
  and does nothing if it still fires.
"""

STATE_IDLE = "IDLE"
STATE_ARMED = "ARMED"
STATE_FIRING = "FIRING"


def next_fire_time(now_utc: datetime, hour: int, minute: int, tz_name: str) -> datetime:
    """
    Next UTC-naive instant (strictly after now_utc) at which the local wall
    clock in tz_name reads hour:minute.
    """
    zone = get_zone(tz_name)
    local_now = now_utc.replace(tzinfo=timezone.utc).astimezone(zone)

    day = local_now.date()
    candidate = datetime.combine(day, time(hour, minute), tzinfo=zone)
    if candidate <= local_now:
        candidate = datetime.combine(day + timedelta(days=1), time(hour, minute), tzinfo=zone)

    return candidate.astimezone(timezone.utc).replace(tzinfo=None)


class ReportScheduler:
    def __init__(
        self,
        job: Callable[[], object],
        *,
        clock: Callable[[], datetime] = utcnow,
        logger: logging.Logger | None = None,
        timer_factory: Callable[[float, Callable[[], None]], threading.Timer] = threading.Timer,
        dispatch: Callable[[Callable[[], None]], None] | None = None,
    ):
        self._job = job
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)
        self._timer_factory = timer_factory
        self._dispatch = dispatch or self._dispatch_thread

        self._lock = threading.RLock()
        self._timer = None
        self._generation = 0
        self._state = STATE_IDLE
        self._schedule: ReportSchedule | None = None
        self._next_fire_at: datetime | None = None

    @property
    def state(self) -> str:
        return self._state

    @property
    def schedule(self) -> ReportSchedule | None:
        return self._schedule

    @property
    def next_fire_at(self) -> datetime | None:
        return self._next_fire_at

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    def start(self, hour: int, minute: int, tz_name: str) -> None:
        """Tear down any armed timer and arm for the next hour:minute in tz_name."""
        schedule = config_service.validate_schedule(hour, minute, tz_name)
        with self._lock:
            self._cancel_locked()
            self._schedule = schedule
            self._arm_locked()
        self._log.info(
            "Daily report scheduled at %02d:%02d %s (next run %sZ)",
            schedule.hour, schedule.minute, schedule.timezone, self._next_fire_at.isoformat(),
        )

    def update_schedule(self, hour: int, minute: int, tz_name: str) -> None:
        self.start(hour, minute, tz_name)

    def stop(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._schedule = None
            self._state = STATE_IDLE

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._next_fire_at = None
        self._generation += 1

    def _arm_locked(self, after: datetime | None = None) -> None:
        s = self._schedule
        now = self._clock()
        # after a firing, count from its own slot: the wall clock may still
        # read a few ms before it when the monotonic timer expires
        base = now if after is None else max(now, after)
        fire_at = next_fire_time(base, s.hour, s.minute, s.timezone)
        delay = max((fire_at - now).total_seconds(), 0.0)

        generation = self._generation
        timer = self._timer_factory(delay, lambda: self._fire(generation))
        timer.daemon = True
        self._timer = timer
        self._next_fire_at = fire_at
        self._state = STATE_ARMED
        timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._schedule is None:
                return
            self._state = STATE_FIRING
            fired_slot = self._next_fire_at
            self._timer = None
            self._dispatch(self._run_job)
            self._generation += 1
            self._arm_locked(after=fired_slot)

    def _run_job(self) -> None:
        try:
            self._job()
        except NotificationFailure as exc:
            self._log.error("Daily report delivery failed: %s %s", exc.message, exc.details)
        except Exception:
            self._log.exception("Daily report job failed")

    @staticmethod
    def _dispatch_thread(fn: Callable[[], None]) -> None:
        threading.Thread(target=fn, name="tillbook-daily-report", daemon=True).start()


def send_daily_report(
    store: LedgerStore,
    notifier: Notifier,
    *,
    default_currency: str,
    clock: Callable[[], datetime] = utcnow,
    day: date | str | None = None,
) -> dict:
    """
    Aggregate one day, format it in the configured currency and send it.

    day defaults to "today" in the report timezone. Raises NotificationFailure
    if delivery fails.
    """
    tz_name = config_service.get_report_timezone(store)
    if day is None:
        day = local_today(clock(), tz_name)

    report = reporting_service.daily_report(store, day, tz_name=tz_name)
    currency = config_service.get_currency(store, default_currency)
    text = reporting_service.format_report(report, currency)

    notifier.send(text)
    return {"report": report, "text": text}


def send_report_now(
    store: LedgerStore,
    notifier: Notifier,
    *,
    default_currency: str,
    clock: Callable[[], datetime] = utcnow,
    day: date | str | None = None,
    logger: logging.Logger | None = None,
) -> dict:
    """Manual "send now": same job as the timer, but failures reach the caller."""
    log = logger or logging.getLogger(__name__)
    try:
        return send_daily_report(store, notifier, default_currency=default_currency, clock=clock, day=day)
    except NotificationFailure as exc:
        log.warning("Manual report send failed: %s", exc.message)
        raise


def set_schedule(
    store: LedgerStore,
    scheduler: ReportScheduler | None,
    *,
    hour,
    minute,
    timezone_name: str | None = None,
) -> ReportSchedule:
    """Validate, persist and (when a scheduler is running) re-arm the daily report."""
    schedule = config_service.validate_schedule(hour, minute, timezone_name)
    config_service.save_report_schedule(store, schedule)
    if scheduler is not None:
        scheduler.update_schedule(schedule.hour, schedule.minute, schedule.timezone)
    return schedule


def make_report_job(app) -> Callable[[], dict]:
    """Timer job bound to a Flask app: runs send_daily_report in its own app context."""
    def _job():
        with app.app_context():
            ext = app.extensions
            return send_daily_report(
                ext["ledger_store"],
                ext["report_notifier"],
                default_currency=app.config["DEFAULT_CURRENCY"],
            )
    return _job
