"""Calendar helpers used by the leave and payroll calculators."""
import calendar
from datetime import date, datetime
from typing import Optional, Union


DATE_FORMATS = [
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%d %b %Y",
    "%d-%m-%y",
    "%d/%m/%y",
]

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Parse a date from the formats seen in HR spreadsheets.

    Returns None for empty or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    value = str(value).strip()
    if not value:
        return None

    # ISO timestamps ("2024-01-01T00:00:00.000Z")
    if "T" in value:
        value = value.split("T", 1)[0]

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def months_between(start: date, end: date) -> int:
    """Whole calendar months from the month of `start` to the month of `end`.

    Negative when `end` precedes `start`.
    """
    return (end.year - start.year) * 12 + (end.month - start.month)


def add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def financial_year_start(d: date) -> int:
    """Year in which the April-March financial year containing `d` began."""
    return d.year if d.month >= 4 else d.year - 1


def month_name(month: int) -> str:
    return MONTH_NAMES[month - 1]


def parse_month(value: Union[str, int, None]) -> Optional[int]:
    """Resolve a month given as a number or a name.

    Names match on their first three letters, so "Jan", "january" and
    "JANUARY" all resolve to 1.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        month = int(text)
        return month if 1 <= month <= 12 else None
    prefix = text[:3].lower()
    for index, name in enumerate(MONTH_NAMES, start=1):
        if name[:3].lower() == prefix:
            return index
    return None
