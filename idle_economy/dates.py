"""Local-calendar day keys and week helpers.

A DateKey is the only date type the engine works with. It is built from the
local calendar day of a moment and compared by value, so "already claimed
today" checks reset on their own when the calendar day changes.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from .errors import DateKeyError


MS_PER_MINUTE = 60_000
MS_PER_DAY = 24 * 60 * MS_PER_MINUTE
MS_PER_WEEK = 7 * MS_PER_DAY

_EPOCH_ORDINAL = date(1970, 1, 1).toordinal()


@dataclass(frozen=True, order=True)
class DateKey:
    """A local calendar day, rendered as YYYY-MM-DD."""

    day: date

    @classmethod
    def parse(cls, value: str) -> "DateKey":
        """Parse a YYYY-MM-DD string."""
        return cls(date.fromisoformat(value.strip()))

    @classmethod
    def from_datetime(cls, moment: datetime) -> "DateKey":
        """Local calendar day of a datetime.

        Aware datetimes are converted to local time first; naive ones are
        assumed to already be local.
        """
        if moment.tzinfo is not None:
            moment = moment.astimezone()
        return cls(moment.date())

    @classmethod
    def from_timestamp_ms(cls, timestamp_ms: float) -> "DateKey":
        return cls(datetime.fromtimestamp(timestamp_ms / 1000).date())

    @classmethod
    def today(cls) -> "DateKey":
        return cls(date.today())

    @property
    def day_of_week(self) -> int:
        """0 = Sunday ... 6 = Saturday."""
        return self.day.isoweekday() % 7

    @property
    def noon_ms(self) -> int:
        """Noon of this day in milliseconds counted from 1970-01-01."""
        days = self.day.toordinal() - _EPOCH_ORDINAL
        return days * MS_PER_DAY + MS_PER_DAY // 2

    @property
    def epoch_week(self) -> int:
        """Weeks since the Unix epoch. Increments every 7 days, never resets."""
        return self.noon_ms // MS_PER_WEEK

    def shift(self, days: int) -> "DateKey":
        return DateKey(self.day + timedelta(days=days))

    def __str__(self) -> str:
        return self.day.isoformat()


DateKeyLike = Union[DateKey, str, date, None]


def as_date_key(value: DateKeyLike) -> Optional[DateKey]:
    """Coerce a DateKey, YYYY-MM-DD string or date into a DateKey.

    Empty or unparseable values become None, which never equals a real day.
    """
    if value is None or isinstance(value, DateKey):
        return value
    if isinstance(value, datetime):
        return DateKey.from_datetime(value)
    if isinstance(value, date):
        return DateKey(value)
    if isinstance(value, str) and value.strip():
        try:
            return DateKey.parse(value)
        except ValueError:
            return None
    return None


def require_date_key(value: DateKeyLike) -> DateKey:
    """Like as_date_key(), but raise DateKeyError when no day can be read."""
    key = as_date_key(value)
    if key is None:
        raise DateKeyError(f"not a calendar day: {value!r}")
    return key


def same_day(stored: DateKeyLike, today: DateKeyLike) -> bool:
    """True when a stored "last used" key is the given day."""
    stored_key = as_date_key(stored)
    return stored_key is not None and stored_key == as_date_key(today)


def today_key() -> DateKey:
    return DateKey.today()


def yesterday_key() -> DateKey:
    return DateKey.today().shift(-1)


def week_start(key: DateKeyLike) -> DateKey:
    """Monday of the week containing the given day."""
    day = require_date_key(key)
    days_since_monday = (day.day_of_week + 6) % 7
    return day.shift(-days_since_monday)


def week_key(key: DateKeyLike) -> str:
    """Human readable week identifier: "week-" plus the Monday's date."""
    return f"week-{week_start(key)}"


def week_days(key: DateKeyLike) -> list[DateKey]:
    """All seven days (Monday to Sunday) of the week containing the day."""
    monday = week_start(key)
    return [monday.shift(i) for i in range(7)]


def month_matrix(key: DateKeyLike) -> list[list[Optional[DateKey]]]:
    """Monday-first calendar grid for the month containing the day.

    Each row has exactly 7 cells; cells outside the month are None.
    """
    day = require_date_key(key).day
    first = day.replace(day=1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    days_in_month = (next_month - first).days

    cells: list[Optional[DateKey]] = [None] * first.weekday()
    for offset in range(days_in_month):
        cells.append(DateKey(first + timedelta(days=offset)))
    while len(cells) % 7:
        cells.append(None)

    return [cells[i:i + 7] for i in range(0, len(cells), 7)]
