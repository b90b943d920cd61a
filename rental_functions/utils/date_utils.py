from datetime import date, datetime
from zoneinfo import ZoneInfo
import logging

from rental_functions.constants import LOCAL_TIMEZONE

log = logging.getLogger(__name__)

MONTH_NAMES = [
    'Enero', 'Febrero', 'Marzo', 'Abril', 'Mayo', 'Junio',
    'Julio', 'Agosto', 'Septiembre', 'Octubre', 'Noviembre', 'Diciembre'
]


def parse_date(value) -> date | None:
    """
    Parses a stored date value into a `date`.
    Accepts `date`/`datetime` objects, 'YYYY-MM-DD' strings and ISO timestamps.
    Returns None for empty or unparseable values.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.strptime(text, '%d/%m/%Y').date()
    except ValueError:
        log.warning(f"Could not parse date '{value}'")
        return None


def local_today(timezone: str = LOCAL_TIMEZONE) -> date:
    """Current calendar date in the landlord's timezone."""
    return datetime.now(ZoneInfo(timezone)).date()


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """Returns the first day of the month `months` away from `value`'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def iter_months(start: date, end: date):
    """Yields the first day of every month from `start`'s month up to, but excluding, `end`'s month."""
    current = first_of_month(start)
    stop = first_of_month(end)
    while current < stop:
        yield current
        current = add_months(current, 1)


def is_same_month(first: date | None, second: date | None) -> bool:
    if not first or not second:
        return False
    return first.year == second.year and first.month == second.month


def month_name(month_number: int) -> str:
    if 1 <= month_number <= 12:
        return MONTH_NAMES[month_number - 1]
    return ''


def format_month_label(value: date) -> str:
    """'marzo de 2024' style label used in alert subtitles."""
    return f"{month_name(value.month).lower()} de {value.year}"


def format_date(value, fmt: str = '%d/%m/%Y') -> str:
    parsed = parse_date(value)
    return parsed.strftime(fmt) if parsed else ''
