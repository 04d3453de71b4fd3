"""Response envelope: ``{"result": code, "epidata": [...], "message": str}``.

Result codes: 1 success, 2 too many results, -2 no results, -1 invalid
request or timeout. Failures never carry rows.
"""

from __future__ import annotations

import logging
from typing import Any

import polars as pl

from ..errors import QueryError
from .engine import QueryEngine

logger = logging.getLogger(__name__)

SUCCESS = 1


def frame_to_epidata(frame: pl.DataFrame) -> list[dict[str, Any]]:
    """Convert result rows to epidata dicts with YYYYMMDD integer dates."""
    return frame.with_columns(
        pl.col('date').dt.strftime('%Y%m%d').cast(pl.Int64),
        pl.col('issue').dt.strftime('%Y%m%d').cast(pl.Int64),
    ).to_dicts()


def error_envelope(result: int, message: str) -> dict[str, Any]:
    return {'result': result, 'epidata': [], 'message': message}


def respond(
    engine: QueryEngine,
    states: Any,
    dates: Any,
    issues: Any = None,
    timeout: float | None = None,
) -> dict[str, Any]:
    """Run a query and wrap its outcome in the response envelope."""
    try:
        frame = engine.query(states, dates, issues, timeout=timeout)
    except QueryError as e:
        logger.info(f'Query returned {e.result}: {e.message}')
        return error_envelope(e.result, e.message)
    return {'result': SUCCESS, 'epidata': frame_to_epidata(frame), 'message': 'success'}
