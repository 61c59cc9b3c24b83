"""Rendering helpers for commission reports: hours text and CSV export."""

from __future__ import annotations

import csv
import io
from decimal import Decimal
from typing import Any

from barbearia.models.commission import CommissionReport

CSV_HEADER = [
    "barber_id",
    "barber",
    "month",
    "minutes_worked",
    "hours_worked",
    "participation_pct",
    "revenue_share",
    "commission",
]


def format_minutes(minutes: int) -> str:
    """Render minutes as "45min", "2h" or "2h 30min"."""
    hours, rest = divmod(max(0, int(minutes)), 60)
    if hours == 0:
        return f"{rest}min"
    if rest == 0:
        return f"{hours}h"
    return f"{hours}h {rest}min"


def participation_percent(rate: Decimal) -> Decimal:
    """Convert a participation fraction into a percentage with 2 places."""
    return (rate * Decimal("100")).quantize(Decimal("0.01"))


def report_rows(report: CommissionReport) -> list[dict[str, Any]]:
    """Flatten a report into JSON-friendly rows, one per barber."""
    rows = []
    for result in report.results:
        rows.append({
            "barber_id": result.barber_id,
            "barber": result.barber.name,
            "active": result.barber.active,
            "month": report.month_key or "",
            "minutes_worked": result.minutes_worked,
            "hours_worked": format_minutes(result.minutes_worked),
            "participation_pct": str(participation_percent(result.participation_rate)),
            "revenue_share": str(result.revenue_share),
            "commission": str(result.commission_value),
        })
    return rows


def report_summary(report: CommissionReport) -> dict[str, Any]:
    """Return the report totals plus its rows."""
    return {
        "month": report.month_key,
        "total_revenue": str(report.total_revenue),
        "commission_pct": str(report.commission_pct),
        "pool_value": str(report.pool_value),
        "total_minutes": report.total_minutes,
        "total_commission": str(report.total_commission),
        "rounding_drift": str(report.rounding_drift),
        "results": report_rows(report),
    }


def export_csv(report: CommissionReport) -> str:
    """Render a report as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_HEADER, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in report_rows(report):
        writer.writerow(row)
    return buffer.getvalue()
