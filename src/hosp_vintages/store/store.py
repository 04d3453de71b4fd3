"""Versioned record store: immutable Versions with audited in-place repairs.

The in-memory index is rebuilt on open by replaying the operation log.
Writes append to the log before touching the index, so a crash between the
two is recovered by the next replay.
"""

from __future__ import annotations

import bisect
import logging
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

import polars as pl

from ..config import FSYNC_LOG
from ..errors import ConflictError, NotFound, QueryTimeout
from .log import OperationLog
from .records import AuditRecord, Version, VersionKey, versions_to_frame

logger = logging.getLogger(__name__)

DateRange = tuple[date | None, date | None]

_N_KEY_LOCKS = 64


@dataclass(frozen=True)
class Scan:
    """Lazy, restartable scan over the store.

    Each iteration snapshots the matching keys and then yields Versions in
    (entity_id, observation_date, issue_date, source_id) order.
    """

    store: VersionStore
    entity_ids: frozenset[str] | None
    observation_dates: DateRange
    issue_dates: DateRange
    deadline: float | None = None

    def __iter__(self) -> Iterator[Version]:
        keys = self.store._snapshot_keys(self.entity_ids, self.observation_dates)
        obs_lo, obs_hi = self.observation_dates
        lo, hi = self.issue_dates
        for key in keys:
            if self.deadline is not None and time.monotonic() > self.deadline:
                raise QueryTimeout()
            if obs_lo is not None and key.observation_date < obs_lo:
                continue
            if obs_hi is not None and key.observation_date > obs_hi:
                continue
            if lo is not None and key.issue_date < lo:
                continue
            if hi is not None and key.issue_date > hi:
                continue
            yield self.store._versions[key]


class VersionStore:
    """Append-only Version store with a repair exception.

    Parameters
    ----------
    path : Path or None
        Operation log location. ``None`` gives an in-memory store.
    fsync : bool
        fsync the log after every append.
    """

    def __init__(self, path: Path | str | None = None, fsync: bool = FSYNC_LOG) -> None:
        self._log = OperationLog(path, fsync=fsync)
        self._versions: dict[VersionKey, Version] = {}
        self._keys: list[VersionKey] = []
        self._max_issue: dict[str, date] = {}
        self._audit: list[AuditRecord] = []
        self._index_lock = threading.Lock()
        self._key_locks = [threading.Lock() for _ in range(_N_KEY_LOCKS)]

        n_entries = 0
        for entry in self._log.replay():
            self._apply(entry)
            n_entries += 1
        if path is not None:
            logger.info(
                f'Replayed {n_entries} log entries from {path}: '
                f'{len(self._versions)} versions, {len(self._audit)} repairs'
            )

    def __len__(self) -> int:
        return len(self._versions)

    def close(self) -> None:
        self._log.close()

    def __enter__(self) -> 'VersionStore':
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def put(self, version: Version) -> bool:
        """Persist a Version.

        Returns
        -------
        bool
            True if written, False if an identical Version was already stored.

        Raises
        ------
        ConflictError
            If the key exists with different field values.
        """
        key = version.key
        with self._lock_for(key):
            existing = self._versions.get(key)
            if existing is not None:
                if existing.fields == version.fields:
                    return False
                raise ConflictError(
                    f'Version {key} already stored with different values; '
                    f'use the repair path to correct it'
                )
            self._log.append({'op': 'ingest', 'version': version.to_dict()})
            self._index(version)
        return True

    def repair(
        self,
        key: VersionKey,
        fields: Mapping[str, Any],
        operator: str,
        reason: str,
    ) -> AuditRecord:
        """Replace a stored Version's fields and record the replacement.

        Always appends an audit record, including when *fields* equal the
        stored values.

        Raises
        ------
        NotFound
            If no Version is stored under *key*.
        """
        with self._lock_for(key):
            current = self._versions.get(key)
            if current is None:
                raise NotFound(f'No version stored for {key}')
            record = AuditRecord(
                key=key,
                old=dict(current.fields),
                new=dict(fields),
                timestamp=datetime.now(timezone.utc),
                operator=operator,
                reason=reason,
            )
            entry = {'op': 'repair', **record.to_dict()}
            self._log.append(entry)
            self._apply_repair(record)
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(
        self,
        entity_id: str,
        observation_date: date,
        issue_date: date,
        source_id: str | None = None,
    ) -> Version:
        """Return the exact Version for a key.

        Without *source_id* the lookup must match a single source.

        Raises
        ------
        NotFound
            If nothing is stored under the key.
        ConflictError
            If *source_id* is omitted and several sources match.
        """
        if source_id is not None:
            key = VersionKey(entity_id, observation_date, issue_date, source_id)
            version = self._versions.get(key)
            if version is None:
                raise NotFound(f'No version stored for {key}')
            return version

        matches = self.get_all(entity_id, observation_date, issue_date)
        if not matches:
            raise NotFound(
                f'No version stored for {entity_id}/{observation_date}/{issue_date}'
            )
        if len(matches) > 1:
            sources = [v.source_id for v in matches]
            raise ConflictError(
                f'{entity_id}/{observation_date}/{issue_date} is stored by '
                f'several sources {sources}; pass source_id'
            )
        return matches[0]

    def get_all(
        self, entity_id: str, observation_date: date, issue_date: date
    ) -> list[Version]:
        """Return every source's Version at (entity, observation date, issue)."""
        lower = VersionKey(entity_id, observation_date, issue_date, '')
        with self._index_lock:
            i = bisect.bisect_left(self._keys, lower)
            keys: list[VersionKey] = []
            while i < len(self._keys):
                key = self._keys[i]
                if (key.entity_id, key.observation_date, key.issue_date) != (
                    entity_id,
                    observation_date,
                    issue_date,
                ):
                    break
                keys.append(key)
                i += 1
        return [self._versions[k] for k in keys]

    def scan(
        self,
        entity_ids: Iterable[str] | None = None,
        observation_dates: DateRange = (None, None),
        issue_dates: DateRange = (None, None),
        deadline: float | None = None,
    ) -> Scan:
        """Return a lazy scan ordered by (entity, observation date, issue).

        Parameters
        ----------
        entity_ids : Iterable[str], optional
            Entities to include; all when omitted.
        observation_dates, issue_dates : tuple[date | None, date | None]
            Inclusive bounds; ``None`` leaves a side open.
        deadline : float, optional
            ``time.monotonic()`` value after which iteration raises
            QueryTimeout.
        """
        entities = frozenset(entity_ids) if entity_ids is not None else None
        return Scan(self, entities, observation_dates, issue_dates, deadline)

    def audit_log(self, key: VersionKey | None = None) -> list[AuditRecord]:
        """Return applied repairs in order, optionally for a single key."""
        with self._index_lock:
            records = list(self._audit)
        if key is None:
            return records
        return [r for r in records if r.key == key]

    def max_issue(self, source_id: str) -> date | None:
        """Return the latest issue stored for a source, or None."""
        return self._max_issue.get(source_id)

    def to_frame(self) -> pl.LazyFrame:
        """Return every stored Version as a LazyFrame (state, date, issue, fields, source)."""
        return versions_to_frame(self.scan()).lazy()

    # ------------------------------------------------------------------
    # Internal: fold over log entries
    # ------------------------------------------------------------------

    def _apply(self, entry: Mapping[str, Any]) -> None:
        op = entry.get('op')
        if op == 'ingest':
            self._index(Version.from_dict(entry['version']))
        elif op == 'repair':
            self._apply_repair(AuditRecord.from_dict(entry))
        else:
            raise ValueError(f'Unknown log operation: {op!r}')

    def _apply_repair(self, record: AuditRecord) -> None:
        current = self._versions.get(record.key)
        if current is None:
            raise ValueError(f'Repair entry for unknown version {record.key}')
        self._index(current.with_fields(record.new))
        with self._index_lock:
            self._audit.append(record)

    def _index(self, version: Version) -> None:
        key = version.key
        with self._index_lock:
            if key not in self._versions:
                bisect.insort(self._keys, key)
            self._versions[key] = version
            latest = self._max_issue.get(key.source_id)
            if latest is None or key.issue_date > latest:
                self._max_issue[key.source_id] = key.issue_date

    def _lock_for(self, key: VersionKey) -> threading.Lock:
        return self._key_locks[hash(key) % _N_KEY_LOCKS]

    def _snapshot_keys(
        self,
        entity_ids: frozenset[str] | None,
        observation_dates: DateRange,
    ) -> list[VersionKey]:
        lo, hi = observation_dates
        with self._index_lock:
            if entity_ids is None:
                return list(self._keys)
            keys: list[VersionKey] = []
            for entity in sorted(entity_ids):
                start = bisect.bisect_left(
                    self._keys, VersionKey(entity, lo or date.min, date.min, '')
                )
                end = bisect.bisect_left(
                    self._keys,
                    VersionKey(entity, hi or date.max, date.max, '\uffff'),
                )
                keys.extend(self._keys[start:end])
        return keys
