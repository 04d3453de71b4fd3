"""Version, key and audit record types plus their log/frame encodings.

Dates are encoded as YYYYMMDD integers in the operation log and on the
wire, matching the epidata convention.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from datetime import date, datetime
from typing import Any, Iterable, Mapping

import polars as pl

from ..lookups.columns import RESULT_SCHEMA


def date_to_int(value: date) -> int:
    """Encode a date as a YYYYMMDD integer."""
    return value.year * 10_000 + value.month * 100 + value.day


def int_to_date(value: int | str) -> date:
    """Decode a YYYYMMDD integer (or digit string) into a date.

    Raises
    ------
    ValueError
        If the value is not a valid YYYYMMDD date.
    """
    text = str(value).strip()
    if len(text) != 8 or not text.isdigit():
        raise ValueError(f'Expected a YYYYMMDD date, got {value!r}')
    return date(int(text[:4]), int(text[4:6]), int(text[6:]))


@dataclass(frozen=True, order=True)
class VersionKey:
    """Identity of one Version: (entity, observation date, issue, source)."""

    entity_id: str
    observation_date: date
    issue_date: date
    source_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            'state': self.entity_id,
            'date': date_to_int(self.observation_date),
            'issue': date_to_int(self.issue_date),
            'source': self.source_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VersionKey:
        return cls(
            entity_id=data['state'],
            observation_date=int_to_date(data['date']),
            issue_date=int_to_date(data['issue']),
            source_id=data['source'],
        )

    def __str__(self) -> str:
        return (
            f'{self.entity_id}/{date_to_int(self.observation_date)}'
            f'/{date_to_int(self.issue_date)}/{self.source_id}'
        )


@dataclass(frozen=True)
class Version:
    """Immutable snapshot of one source's values for an observation at one issue."""

    entity_id: str
    observation_date: date
    issue_date: date
    source_id: str
    fields: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        # private read-only copy; stored values change only through repair
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields)))

    @property
    def key(self) -> VersionKey:
        return VersionKey(
            self.entity_id, self.observation_date, self.issue_date, self.source_id
        )

    def with_fields(self, fields: Mapping[str, Any]) -> Version:
        """Return a copy carrying *fields* under the same key."""
        return Version(
            self.entity_id,
            self.observation_date,
            self.issue_date,
            self.source_id,
            dict(fields),
        )

    def to_dict(self) -> dict[str, Any]:
        return {**self.key.to_dict(), 'fields': dict(self.fields)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Version:
        key = VersionKey.from_dict(data)
        return cls(
            key.entity_id,
            key.observation_date,
            key.issue_date,
            key.source_id,
            dict(data.get('fields', {})),
        )


@dataclass(frozen=True)
class AuditRecord:
    """One applied repair: the key, the values before and after, and who/why."""

    key: VersionKey
    old: Mapping[str, Any] = field(hash=False)
    new: Mapping[str, Any] = field(hash=False)
    timestamp: datetime
    operator: str
    reason: str

    def __post_init__(self) -> None:
        object.__setattr__(self, 'old', MappingProxyType(dict(self.old)))
        object.__setattr__(self, 'new', MappingProxyType(dict(self.new)))

    @property
    def changed(self) -> dict[str, tuple[Any, Any]]:
        """Fields whose value differs, as ``{name: (old, new)}``."""
        names = sorted(set(self.old) | set(self.new))
        return {
            n: (self.old.get(n), self.new.get(n))
            for n in names
            if self.old.get(n) != self.new.get(n)
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            'key': self.key.to_dict(),
            'old': dict(self.old),
            'new': dict(self.new),
            'timestamp': self.timestamp.isoformat(),
            'operator': self.operator,
            'reason': self.reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AuditRecord:
        return cls(
            key=VersionKey.from_dict(data['key']),
            old=dict(data['old']),
            new=dict(data['new']),
            timestamp=datetime.fromisoformat(data['timestamp']),
            operator=data.get('operator', ''),
            reason=data.get('reason', ''),
        )


def versions_to_frame(
    versions: Iterable[Version],
    ranks: Mapping[str, int] | None = None,
) -> pl.DataFrame:
    """Materialize Versions into a frame with RESULT_SCHEMA columns plus ``source``.

    Parameters
    ----------
    versions : Iterable[Version]
        Versions to convert.
    ranks : Mapping[str, int], optional
        Source rank lookup. When given, a ``rank`` column is added.

    Returns
    -------
    pl.DataFrame
        One row per Version; unreported fields are null.
    """
    schema: dict[str, pl.DataType] = {**RESULT_SCHEMA, 'source': pl.Utf8}
    field_names = [n for n in RESULT_SCHEMA if n not in ('state', 'date', 'issue')]
    if ranks is not None:
        schema['rank'] = pl.Int64

    rows: list[dict[str, Any]] = []
    for v in versions:
        row = {
            'state': v.entity_id,
            'date': v.observation_date,
            'issue': v.issue_date,
            **{n: v.fields.get(n) for n in field_names},
            'source': v.source_id,
        }
        if ranks is not None:
            row['rank'] = ranks[v.source_id]
        rows.append(row)

    return pl.DataFrame(rows, schema=schema, strict=False)
