"""
Deterministic cache keys and the patterns that invalidate them.

Keys are colon-separated, most general segment first and the date,
year-month or ISO week last: ``sales:daily:total:2025-08-14``. The
invalidation patterns in ``CachePatterns`` rely on that shape, so a change
to a key format here must be matched by a change to its pattern.
"""

import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

import pytz

from lotto_cache.core.exceptions import ValidationError

DateLike = Union[date, str]

DEFAULT_TIMEZONE = "America/Mexico_City"

# Default TTL per kind of data, in minutes
CACHE_TTL_MINUTES = {
    'sales_daily': 30,
    'sales_weekly': 60,
    'sales_monthly': 120,
    'sales_hourly': 5,
    'user_profile': 30,
    'user_permissions': 60,
    'dashboard': 10,
    # Historical, rarely changes
    'comparison': 240,
    'commissions_monthly': 240,
    'paid_prizes': 120,
    'tickets': 120,
    'ticket_averages': 240,
    'roll_changes': 120,
}

_WEEK_RE = re.compile(r"^\d{4}-W\d{2}$")


def to_date(value: DateLike) -> date:
    """
    Normalize a ``date``/``datetime`` or ``YYYY-MM-DD`` string to a date.

    Raises:
        ValidationError: If the string is not an ISO date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid date: {value!r}",
            field_name="date",
            expected_type="YYYY-MM-DD",
            actual_value=value
        )


def date_str(value: DateLike) -> str:
    return to_date(value).isoformat()


def year_month(year: int, month: int) -> str:
    """Zero-padded ``YYYY-MM``."""
    if not 1 <= int(month) <= 12:
        raise ValidationError(f"Invalid month: {month!r}", field_name="month", actual_value=month)
    return f"{int(year):04d}-{int(month):02d}"


def week_start(value: DateLike) -> date:
    """Monday of the week containing ``value``."""
    day = to_date(value)
    return day - timedelta(days=day.weekday())


def iso_week(value: DateLike) -> str:
    """ISO week label such as ``2024-W01``."""
    iso_year, iso_week_number, _ = to_date(value).isocalendar()
    return f"{iso_year:04d}-W{iso_week_number:02d}"


def _week(value: str) -> str:
    if not isinstance(value, str) or not _WEEK_RE.match(value):
        raise ValidationError(
            f"Invalid ISO week: {value!r}",
            field_name="week",
            expected_type="YYYY-Www",
            actual_value=value
        )
    return value


def business_today(tz_name: str = DEFAULT_TIMEZONE, now: Optional[datetime] = None) -> date:
    """
    Current calendar date in the business timezone.

    Args:
        tz_name: Olson timezone name
        now: Aware or UTC-naive instant to convert (defaults to the current time)
    """
    tz = pytz.timezone(tz_name)
    if now is None:
        return datetime.now(tz).date()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    return now.astimezone(tz).date()


def monthly_total_ttl(year: int, month: int, today: date) -> float:
    """
    TTL for a monthly sales total.

    The running month changes all day, so it gets half the monthly TTL;
    closed months get double.
    """
    base = CACHE_TTL_MINUTES['sales_monthly']
    if (year, month) == (today.year, today.month):
        return base / 2
    return base * 2


class CacheKeys:
    """Key builders, one per cached query."""

    # Sales
    @staticmethod
    def daily_total(day: DateLike) -> str:
        return f"sales:daily:total:{date_str(day)}"

    @staticmethod
    def sales_for_date(day: DateLike) -> str:
        return f"sales:daily:entries:{date_str(day)}"

    @staticmethod
    def hourly_sales(day: DateLike) -> str:
        return f"sales:hourly:data:{date_str(day)}"

    @staticmethod
    def weekly_total(day: DateLike) -> str:
        """Keyed by the Monday of the week so any day of the week agrees."""
        return f"sales:weekly:total:{week_start(day).isoformat()}"

    @staticmethod
    def monthly_total(year: int, month: int) -> str:
        return f"sales:monthly:total:{year_month(year, month)}"

    # Dashboard
    @staticmethod
    def todays_sales(today: DateLike) -> str:
        return f"dashboard:today:{date_str(today)}"

    @staticmethod
    def this_week_sales(today: DateLike) -> str:
        return f"dashboard:week:{week_start(today).isoformat()}"

    @staticmethod
    def this_month_sales(today: DateLike) -> str:
        day = to_date(today)
        return f"dashboard:month:{year_month(day.year, day.month)}"

    # Users
    @staticmethod
    def user_profile(user_id: str) -> str:
        return f"user:profile:{user_id}"

    @staticmethod
    def user_permissions(user_id: str) -> str:
        return f"user:perms:{user_id}"

    # Comparisons
    @staticmethod
    def comparison(start: DateLike, end: DateLike, mode: str) -> str:
        return f"comparison:{mode}:{date_str(start)}:{date_str(end)}"

    # Commissions
    @staticmethod
    def commissions_monthly_list(year: int, month: int) -> str:
        return f"commissions:monthly:list:{year_month(year, month)}"

    # Paid prizes
    @staticmethod
    def paid_prizes_monthly_list(year: int, month: int) -> str:
        return f"paidPrizes:monthly:list:{year_month(year, month)}"

    @staticmethod
    def paid_prizes_weekly_list(week: str) -> str:
        return f"paidPrizes:weekly:list:{_week(week)}"

    @staticmethod
    def paid_prizes_weekly_totals(week: str) -> str:
        return f"paidPrizes:weekly:totals:{_week(week)}"

    @staticmethod
    def paid_prizes_monthly_totals(year: int, month: int) -> str:
        return f"paidPrizes:monthly:totals:{year_month(year, month)}"

    # Tickets
    @staticmethod
    def tickets_monthly_list(year: int, month: int) -> str:
        return f"tickets:monthly:list:{year_month(year, month)}"

    @staticmethod
    def tickets_weekly_list(week: str) -> str:
        return f"tickets:weekly:list:{_week(week)}"

    @staticmethod
    def tickets_weekly_totals(week: str, machine_id: Optional[str] = None) -> str:
        key = f"tickets:weekly:totals:{_week(week)}"
        if machine_id is not None:
            key += f":{machine_id}"
        return key

    @staticmethod
    def tickets_monthly_stats(year: int, month: int) -> str:
        return f"tickets:monthly:stats:{year_month(year, month)}"

    # Ticket averages
    @staticmethod
    def ticket_averages_monthly_list(year: int, month: int) -> str:
        return f"ticketAverages:monthly:list:{year_month(year, month)}"

    @staticmethod
    def ticket_averages_daily_stats(year: int, month: int) -> str:
        return f"ticketAverages:daily:stats:{year_month(year, month)}"

    @staticmethod
    def ticket_averages_monthly_stats(year: int, month: int) -> str:
        return f"ticketAverages:monthly:stats:{year_month(year, month)}"

    # Roll changes
    @staticmethod
    def roll_changes_monthly_list(year: int, month: int) -> str:
        return f"rollChanges:monthly:list:{year_month(year, month)}"

    @staticmethod
    def roll_change_entry(entry_id: str, year: int, month: int) -> str:
        return f"rollChanges:entry:{entry_id}:{year_month(year, month)}"

    @staticmethod
    def roll_changes_monthly_stats(year: int, month: int) -> str:
        return f"rollChanges:monthly:stats:{year_month(year, month)}"

    @staticmethod
    def roll_changes_intervals(machine_id: str, year: int, month: int) -> str:
        return f"rollChanges:intervals:{machine_id}:{year_month(year, month)}"

    @staticmethod
    def roll_changes_range(start_year: int, start_month: int, end_year: int, end_month: int) -> str:
        return f"rollChanges:range:{year_month(start_year, start_month)}:{year_month(end_year, end_month)}"


class CachePatterns:
    """
    Invalidation patterns matching the keys built by ``CacheKeys``.

    Every pattern is anchored at the start; scoped patterns are anchored at
    the end too so ``2025-08`` never matches ``2025-08-14``.
    """

    ALL_SALES = r"^sales:"
    ALL_COMPARISONS = r"^comparison:"
    ALL_DASHBOARD = r"^dashboard:"
    ALL_USER = r"^user:"
    ALL_COMMISSIONS = r"^commissions:"
    ALL_PAID_PRIZES = r"^paidPrizes:"
    ALL_TICKETS = r"^tickets:"
    ALL_TICKET_AVERAGES = r"^ticketAverages:"
    ALL_ROLL_CHANGES = r"^rollChanges:"
    ROLL_CHANGE_RANGES = r"^rollChanges:range:"

    @staticmethod
    def sales_for_date(day: DateLike) -> str:
        """Daily keys for ``day`` plus the weekly and monthly totals that include it."""
        d = to_date(day)
        scopes = [
            re.escape(d.isoformat()),
            re.escape(week_start(d).isoformat()),
            re.escape(year_month(d.year, d.month)),
        ]
        return rf"^sales:.*:(?:{'|'.join(scopes)})$"

    @staticmethod
    def commissions_for_month(year: int, month: int) -> str:
        return rf"^commissions:monthly:.*:{re.escape(year_month(year, month))}$"

    @staticmethod
    def paid_prizes_for_month(year: int, month: int) -> str:
        return rf"^paidPrizes:.*:{re.escape(year_month(year, month))}$"

    @staticmethod
    def paid_prizes_for_week(week: str) -> str:
        return rf"^paidPrizes:weekly:[^:]+:{re.escape(_week(week))}$"

    @staticmethod
    def tickets_for_month(year: int, month: int) -> str:
        return rf"^tickets:.*:{re.escape(year_month(year, month))}$"

    @staticmethod
    def tickets_for_week(week: str) -> str:
        # Weekly totals may carry a trailing machine id
        return rf"^tickets:weekly:[^:]+:{re.escape(_week(week))}(?::[^:]+)?$"

    @staticmethod
    def ticket_averages_for_month(year: int, month: int) -> str:
        return rf"^ticketAverages:.*:{re.escape(year_month(year, month))}$"

    @staticmethod
    def roll_changes_for_month(year: int, month: int) -> str:
        return rf"^rollChanges:(?!range:).*:{re.escape(year_month(year, month))}$"

    @staticmethod
    def user(user_id: str) -> str:
        return rf"^user:[^:]+:{re.escape(str(user_id))}$"
