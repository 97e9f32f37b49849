"""Calendar helpers shared by the analytics engines."""
import calendar
from datetime import date, datetime, time, timedelta


def shift_months(day: date, months: int) -> date:
    """
    Move a date by whole calendar months, clamping to the end of the month.

    Examples:
        >>> shift_months(date(2024, 3, 31), -1)
        datetime.date(2024, 2, 29)
        >>> shift_months(date(2024, 1, 15), 2)
        datetime.date(2024, 3, 15)
    """
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def months_between(start: date, end: date) -> int:
    """Whole calendar months from `start` to `end`, never negative."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return max(0, months)


def end_of_day(day: date) -> datetime:
    """First instant after `day`; exclusive upper bound for event windows."""
    return datetime.combine(day + timedelta(days=1), time.min)


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding halves away from zero, for non-negative inputs."""
    if denominator == 0:
        return 0
    return (2 * numerator + denominator) // (2 * denominator)
