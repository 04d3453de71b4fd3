"""Selection of the authoritative Version across sources and issues.

The policy is: among Versions with issue <= cutoff, take the latest issue;
among sources sharing that issue, take the highest-ranked source. The
resolver holds no state beyond the registry, so a resolution depends only
on the Versions passed in.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable

import polars as pl

from ..store.records import Version
from .registry import SourceRegistry


class MergeResolver:
    """Resolve Versions of one observation to the authoritative one."""

    def __init__(self, registry: SourceRegistry | None = None) -> None:
        self.registry = registry if registry is not None else SourceRegistry()

    def resolve(
        self,
        versions: Iterable[Version],
        cutoff: date | None = None,
    ) -> Version | None:
        """Return the authoritative Version, or None if none is eligible.

        Parameters
        ----------
        versions : Iterable[Version]
            Versions of a single (entity_id, observation_date).
        cutoff : date, optional
            Latest issue date to consider; unbounded when omitted.
        """
        eligible = [v for v in versions if cutoff is None or v.issue_date <= cutoff]
        if not eligible:
            return None
        return max(
            eligible,
            key=lambda v: (v.issue_date, self.registry.rank(v.source_id)),
        )

    def resolve_at_issue(self, versions: Iterable[Version], issue: date) -> Version | None:
        """Return the authoritative Version published exactly at *issue*."""
        return self.resolve([v for v in versions if v.issue_date == issue], cutoff=issue)


def merged_view(frame: pl.LazyFrame, cutoff: date | None = None) -> pl.LazyFrame:
    """Latest-issue view: one row per (state, date) as of *cutoff*.

    Parameters
    ----------
    frame : pl.LazyFrame
        Versions with ``state``, ``date``, ``issue`` and ``rank`` columns.
    cutoff : date, optional
        Information set cutoff; unbounded when omitted.

    Returns
    -------
    pl.LazyFrame
        Frame sorted by state, date.
    """
    if cutoff is not None:
        frame = frame.filter(pl.col('issue') <= cutoff)
    return (
        frame.sort(['issue', 'rank'], descending=True)
        .unique(subset=['state', 'date'], keep='first', maintain_order=True)
        .sort('state', 'date', 'issue')
    )


def issue_view(frame: pl.LazyFrame) -> pl.LazyFrame:
    """Per-issue view: one row per (state, date, issue), highest rank kept.

    Returns
    -------
    pl.LazyFrame
        Frame sorted by state, date, issue.
    """
    return (
        frame.sort('rank', descending=True)
        .unique(subset=['state', 'date', 'issue'], keep='first', maintain_order=True)
        .sort('state', 'date', 'issue')
    )
