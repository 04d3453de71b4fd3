"""Query resolution, parameter parsing and the response envelope."""

from .engine import QueryEngine
from .envelope import error_envelope, frame_to_epidata, respond
from .params import DateRange, parse_dates, parse_states

__all__ = [
    'DateRange',
    'QueryEngine',
    'error_envelope',
    'frame_to_epidata',
    'parse_dates',
    'parse_states',
    'respond',
]
