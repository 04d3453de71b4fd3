"""Query parameter parsing: state lists and YYYYMMDD dates or date ranges.

Parameters follow the epidata conventions: comma separated lists, dates as
``YYYYMMDD`` and inclusive ranges as ``YYYYMMDD-YYYYMMDD``. Already-typed
values (``date`` objects, ``(start, end)`` tuples, ``{'from', 'to'}``
dicts as sent in JSON bodies) are accepted as well.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

from ..errors import InvalidQuery
from ..lookups.states import normalize_state
from ..store.records import int_to_date


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of dates; a single date has ``start == end``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidQuery(f'Date range {self.start} - {self.end} is reversed')

    def __contains__(self, value: date) -> bool:
        return self.start <= value <= self.end


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return int_to_date(value)
    except ValueError as e:
        raise InvalidQuery(str(e)) from e


def _to_range(item: Any) -> DateRange:
    if isinstance(item, DateRange):
        return item
    if isinstance(item, dict):
        if 'from' not in item or 'to' not in item:
            raise InvalidQuery(f'Date range needs "from" and "to": {item!r}')
        return DateRange(_to_date(item['from']), _to_date(item['to']))
    if isinstance(item, (tuple, list)):
        if len(item) != 2:
            raise InvalidQuery(f'Date range needs two bounds: {item!r}')
        return DateRange(_to_date(item[0]), _to_date(item[1]))
    if isinstance(item, str) and '-' in item:
        first, _, second = item.partition('-')
        return DateRange(_to_date(first), _to_date(second))
    d = _to_date(item)
    return DateRange(d, d)


def parse_dates(value: Any) -> list[DateRange]:
    """Parse a date list into sorted ranges.

    ``'20200501,20200510-20200512'`` gives a single-day range for May 1 and
    a three-day range for May 10-12. A bare 2-tuple is read as one range;
    a list is read as a list of dates/ranges.

    Raises
    ------
    InvalidQuery
        If any element is not a valid date or range.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = [t.strip() for t in value.split(',') if t.strip()]
    elif isinstance(value, (int, date, dict, DateRange)):
        items = [value]
    elif isinstance(value, tuple):
        items = [value]
    else:
        items = value
    ranges = [_to_range(item) for item in items]
    return sorted(ranges, key=lambda r: (r.start, r.end))


def parse_states(value: Any) -> list[str]:
    """Parse a state list (``'ma,NY'`` or an iterable) into sorted unique codes.

    Raises
    ------
    InvalidQuery
        If a code is not a known reporting entity.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = [t for t in value.split(',') if t.strip()]
    else:
        items = list(value)
    try:
        return sorted({normalize_state(str(s)) for s in items})
    except ValueError as e:
        raise InvalidQuery(str(e)) from e


def hull(ranges: list[DateRange]) -> tuple[date, date]:
    """Smallest single range covering every range in *ranges*."""
    return min(r.start for r in ranges), max(r.end for r in ranges)


def covers(ranges: list[DateRange], value: date) -> bool:
    return any(value in r for r in ranges)
