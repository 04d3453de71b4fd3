"""Query engine: resolve (states x dates [x issues]) against the Version store.

Without issues, every (state, date) resolves to its latest-issue Version,
ties between sources broken by source rank. With issues, every Version
whose issue falls in a requested bucket is returned as published (one
authoritative row per state, date and issue), without re-resolving to the
most recent issue.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import polars as pl

from ..config import MAX_RESULTS, QUERY_TIMEOUT_SECONDS
from ..errors import EmptyResult, InvalidQuery, QueryTimeout, TruncatedResult
from ..lookups.columns import RESULT_SCHEMA
from ..merge.resolver import MergeResolver, issue_view, merged_view
from ..store.records import Version, versions_to_frame
from ..store.store import VersionStore
from .params import covers, hull, parse_dates, parse_states

logger = logging.getLogger(__name__)


class QueryEngine:
    """Answers versioned time-series queries.

    Parameters
    ----------
    store : VersionStore
        Store to read from.
    resolver : MergeResolver, optional
        Cross-source resolver; defaults to one over the configured sources.
    max_results : int
        Resolved row count above which the query is reported as truncated.
    timeout : float
        Default deadline in seconds.
    """

    def __init__(
        self,
        store: VersionStore,
        resolver: MergeResolver | None = None,
        max_results: int = MAX_RESULTS,
        timeout: float = QUERY_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store
        self.resolver = resolver if resolver is not None else MergeResolver()
        self.max_results = max_results
        self.timeout = timeout

    def query(
        self,
        entity_ids: Any,
        observation_dates: Any,
        issue_dates: Any = None,
        timeout: float | None = None,
    ) -> pl.DataFrame:
        """Resolve a query to its result rows.

        Parameters
        ----------
        entity_ids
            Non-empty state list (``'ma,ny'`` or an iterable of codes).
        observation_dates
            Dates or ranges (see ``parse_dates``).
        issue_dates
            Optional issue dates or ranges. When omitted, the latest issue
            per (state, date) is returned.
        timeout : float, optional
            Deadline in seconds; defaults to the engine's timeout.

        Returns
        -------
        pl.DataFrame
            RESULT_SCHEMA columns ordered by state, date, issue.

        Raises
        ------
        InvalidQuery
            If states or dates are missing or malformed.
        EmptyResult
            If nothing matches.
        TruncatedResult
            If more than ``max_results`` rows resolve.
        QueryTimeout
            If the deadline passes before resolution completes.
        """
        states = parse_states(entity_ids)
        dates = parse_dates(observation_dates)
        issues = parse_dates(issue_dates) if issue_dates is not None else None
        if not states:
            raise InvalidQuery('at least one state is required')
        if not dates:
            raise InvalidQuery('at least one date is required')
        if issues is not None and not issues:
            raise InvalidQuery('issues was given but empty')

        budget = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + budget

        scan = self.store.scan(
            states,
            observation_dates=hull(dates),
            issue_dates=hull(issues) if issues else (None, None),
            deadline=deadline,
        )
        versions = [v for v in scan if self._wanted(v, dates, issues)]

        frame = versions_to_frame(versions, ranks=self.resolver.registry.ranks).lazy()
        view = merged_view(frame) if issues is None else issue_view(frame)
        result = view.select(list(RESULT_SCHEMA)).collect()

        if time.monotonic() > deadline:
            raise QueryTimeout()

        n_rows = len(result)
        if n_rows == 0:
            raise EmptyResult()
        if n_rows > self.max_results:
            logger.info(f'Query resolved {n_rows} rows, above cap {self.max_results}')
            raise TruncatedResult(n_rows, self.max_results)
        return result

    def _wanted(self, version: Version, dates, issues) -> bool:
        if version.source_id not in self.resolver.registry:
            logger.warning(f'Skipping version from unconfigured source: {version.key}')
            return False
        if not covers(dates, version.observation_date):
            return False
        return issues is None or covers(issues, version.issue_date)
