"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime

import pendulum

DEFAULT_TZ = "Europe/Copenhagen"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def parse_delivery_date(value: str) -> date | None:
    """Best-effort parse of the feed's expected-delivery column.

    The export uses ``dd-mm-yyyy`` or ``dd.mm.yyyy`` most of the time and ISO
    dates occasionally.
    """
    value = value.strip()
    if not value:
        return None
    for fmt in ("DD-MM-YYYY", "DD.MM.YYYY", "DD/MM/YYYY"):
        try:
            return pendulum.from_format(value, fmt).date()
        except ValueError:
            continue
    try:
        parsed = pendulum.parse(value, strict=False)
    except ValueError:
        return None
    if isinstance(parsed, pendulum.DateTime):
        return parsed.date()
    if isinstance(parsed, date):
        return parsed
    return None


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%d-%H-%M-%S")
