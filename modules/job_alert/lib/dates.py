from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

import jdatetime

# weekday, day, month name, year (e.g. "Shanbeh 25 Farvardin 1403")
JALALI_FORMAT = "%A %d %B %Y"


def today_in(tz_name: str) -> date:
    return datetime.now(ZoneInfo(tz_name)).date()


def jalali_label(day: date, locale: str = "fa_IR") -> str:
    """Render a Gregorian date as a Solar Hijri (Jalali) label in `locale`."""
    jday = jdatetime.date.fromgregorian(date=day, locale=locale)
    return jday.strftime(JALALI_FORMAT)


def date_line(tz_name: str, locale: str = "fa_IR") -> str:
    """Current local date as shown in every message chunk."""
    return jalali_label(today_in(tz_name), locale)
