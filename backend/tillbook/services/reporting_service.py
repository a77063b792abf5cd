# Overview: Service-layer operations for reporting; reads the ledger, never writes it.

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from ..errors import ValidationError
from ..models import Sale, SaleItem
from ..store import LedgerStore
from ..time_utils import local_day_bounds_utc, parse_iso_date, to_utc_z

# Longest range accepted by period_report, in days
MAX_REPORT_DAYS = 366


def _coerce_day(value) -> date:
    if isinstance(value, date):
        return value
    try:
        day = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError("date must be YYYY-MM-DD")
    if day is None:
        raise ValidationError("date is required")
    return day


def _round_cents(value) -> int:
    """Nearest-cent rounding (half-up) of a possibly fractional cent amount."""
    return int(Decimal(str(value or 0)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def daily_report(store: LedgerStore, day, *, tz_name: str = "UTC") -> dict:
    """
    Checks / revenue / profit for one local calendar day.

    Window is [day 00:00:00.000, day 23:59:59.999] in tz_name, inclusive.
    profit = SUM(qty * (price - frozen unit cost)) over the window's sale items.
    A day without sales reports zeros.
    """
    day = _coerce_day(day)
    try:
        start_dt, end_dt = local_day_bounds_utc(day, tz_name)
    except ValueError as exc:
        raise ValidationError(str(exc))

    session = store.session

    checks, revenue = session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.subtotal_cents), 0),
    ).filter(
        Sale.created_at >= start_dt,
        Sale.created_at <= end_dt,
    ).one()

    profit = session.query(
        func.coalesce(
            func.sum(SaleItem.qty * (SaleItem.price_cents - SaleItem.unit_cost_cents)),
            0,
        )
    ).join(Sale, SaleItem.sale_id == Sale.id).filter(
        Sale.created_at >= start_dt,
        Sale.created_at <= end_dt,
    ).scalar()

    return {
        "date": day.isoformat(),
        "timezone": tz_name,
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "checks": int(checks or 0),
        "revenue_cents": int(revenue or 0),
        "profit_cents": _round_cents(profit),
    }


def period_report(store: LedgerStore, start, end, *, tz_name: str = "UTC") -> dict:
    """Daily rows plus totals for an inclusive range of local days."""
    start_day = _coerce_day(start)
    end_day = _coerce_day(end)
    if end_day < start_day:
        raise ValidationError("end must not be before start")
    if (end_day - start_day).days + 1 > MAX_REPORT_DAYS:
        raise ValidationError(f"range cannot exceed {MAX_REPORT_DAYS} days")

    rows = []
    day = start_day
    while day <= end_day:
        rows.append(daily_report(store, day, tz_name=tz_name))
        day += timedelta(days=1)

    return {
        "start": start_day.isoformat(),
        "end": end_day.isoformat(),
        "timezone": tz_name,
        "checks": sum(r["checks"] for r in rows),
        "revenue_cents": sum(r["revenue_cents"] for r in rows),
        "profit_cents": sum(r["profit_cents"] for r in rows),
        "rows": rows,
    }


def format_money(cents: int, currency: str) -> str:
    amount = (Decimal(cents) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{amount:,.2f} {currency}"


def format_report(report: dict, currency: str) -> str:
    """Human-readable daily summary (Telegram HTML markup)."""
    return (
        f"📊 <b>Daily summary for {report['date']}</b>\n"
        f"Checks: <b>{report['checks']}</b>\n"
        f"Revenue: <b>{format_money(report['revenue_cents'], currency)}</b>\n"
        f"Profit: <b>{format_money(report['profit_cents'], currency)}</b>"
    )
