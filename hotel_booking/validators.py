"""Check-in / check-out validation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from .errors import InvalidFormat, InvalidOrder, PastCheckIn

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class DateRange:
    """Stay period; ``check_in`` inclusive, ``check_out`` exclusive."""

    check_in: date
    check_out: date

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def overlaps(self, other: "DateRange") -> bool:
        # adjacent ranges share no night
        return self.check_in < other.check_out and self.check_out > other.check_in

    def __str__(self):
        return f"{self.check_in.isoformat()}..{self.check_out.isoformat()}"


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT).date()
        except ValueError:
            pass
    raise InvalidFormat()


def parse_date_range(check_in, check_out) -> DateRange:
    """Parse both dates and check their order."""
    start = parse_date(check_in)
    end = parse_date(check_out)
    if end <= start:
        raise InvalidOrder()
    return DateRange(start, end)


def validate_date_range(check_in, check_out, today: date) -> DateRange:
    """Validate a stay for a new booking made on ``today``.

    Raises ``InvalidFormat`` when a value is not a calendar date,
    ``InvalidOrder`` when check-out is not after check-in and
    ``PastCheckIn`` when check-in is before ``today``.
    """
    stay = parse_date_range(check_in, check_out)
    if stay.check_in < parse_date(today):
        raise PastCheckIn()
    return stay
