# ---------------------------------------------------------------------------
# hosp_vintages.repair — Audited corrections and snapshot backfills
# ---------------------------------------------------------------------------
"""Corrections to Versions that were stored incorrectly.

Repairs are the only sanctioned way to change a stored Version. Each one
keeps the Version's key, replaces its fields in place and appends an audit
record, so the repair history can be replayed and published.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping

from .errors import NotFound, SchemaError
from .ingest.base import Snapshot, cast_value, parse_snapshot
from .lookups.columns import FIELD_COLUMNS
from .lookups.states import normalize_state
from .merge.resolver import MergeResolver
from .store.records import AuditRecord, date_to_int
from .store.store import VersionStore

logger = logging.getLogger(__name__)

_SPECS = {c.name: c for c in FIELD_COLUMNS}


@dataclass
class BackfillReport:
    """Outcome of re-deriving a snapshot against the store."""

    source_id: str
    issue: date
    repaired: list[AuditRecord] = field(default_factory=list)
    inserted: int = 0
    unchanged: int = 0
    rejected: int = 0
    errors: list[SchemaError] = field(default_factory=list, repr=False)


def _validate_fields(corrected: Mapping[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(corrected) - set(_SPECS))
    if unknown:
        raise SchemaError(f'Undeclared fields in repair: {unknown}')
    fields: dict[str, Any] = {}
    for name, value in corrected.items():
        if isinstance(value, bool):
            raise SchemaError(f'Field {name!r}: boolean is not a valid value')
        try:
            fields[name] = cast_value(None if value is None else str(value), _SPECS[name])
        except ValueError as e:
            raise SchemaError(f'Field {name!r}: {e}') from e
    return fields


class RepairTool:
    """Applies audited repairs to a VersionStore.

    Parameters
    ----------
    store : VersionStore
        Store to correct.
    resolver : MergeResolver, optional
        Used to pick the authoritative source when a repair names none.
    """

    def __init__(self, store: VersionStore, resolver: MergeResolver | None = None) -> None:
        self.store = store
        self.resolver = resolver if resolver is not None else MergeResolver()

    def repair(
        self,
        entity_id: str,
        observation_date: date,
        issue_date: date,
        corrected_fields: Mapping[str, Any],
        operator: str,
        reason: str,
        source_id: str | None = None,
    ) -> AuditRecord:
        """Correct fields of an existing Version in place.

        Fields not named in *corrected_fields* keep their stored values.
        Repeating an identical repair leaves the values unchanged but still
        appends an audit record.

        Parameters
        ----------
        entity_id, observation_date, issue_date
            The Version to correct.
        corrected_fields : Mapping[str, Any]
            New values by field name.
        operator : str
            Who applied the repair.
        reason : str
            Why, as it should appear in the repair log.
        source_id : str, optional
            Source whose Version to correct. Defaults to the authoritative
            source at that exact issue.

        Returns
        -------
        AuditRecord
            The appended audit record.

        Raises
        ------
        NotFound
            If the Version does not exist.
        SchemaError
            If a field is undeclared or a value does not fit its dtype.
        """
        entity_id = normalize_state(entity_id)
        corrected = _validate_fields(corrected_fields)

        if source_id is None:
            candidates = [
                v
                for v in self.store.get_all(entity_id, observation_date, issue_date)
                if v.source_id in self.resolver.registry
            ]
            target = self.resolver.resolve_at_issue(candidates, issue_date)
            if target is None:
                raise NotFound(
                    f'No version stored for {entity_id}/{observation_date}/{issue_date}'
                )
        else:
            target = self.store.get(entity_id, observation_date, issue_date, source_id)

        record = self.store.repair(
            target.key, {**target.fields, **corrected}, operator=operator, reason=reason
        )
        logger.info(f'Repaired {target.key} by {operator}: {record.changed or "no change"}')
        return record

    def backfill(
        self,
        source_id: str,
        snapshot: Snapshot,
        operator: str,
        reason: str,
    ) -> BackfillReport:
        """Re-derive a publication and correct the store to match it.

        Stored Versions of this source and issue whose fields differ from
        the re-parsed snapshot (for example after a column misalignment at
        ingest time) are repaired; rows missing from the store are inserted.

        Returns
        -------
        BackfillReport
            Repairs applied and counts of inserted, unchanged and rejected rows.
        """
        source = self.resolver.registry.get(source_id)
        report = BackfillReport(source_id=source.name, issue=snapshot.issue)

        for line, parsed in parse_snapshot(snapshot, source):
            if isinstance(parsed, SchemaError):
                report.rejected += 1
                report.errors.append(parsed)
                logger.warning(f'Backfill {source.name} {snapshot.issue}: {parsed}')
                continue
            try:
                existing = self.store.get(
                    parsed.entity_id, parsed.observation_date, parsed.issue_date, source.name
                )
            except NotFound:
                self.store.put(parsed)
                report.inserted += 1
                continue
            if existing.fields == parsed.fields:
                report.unchanged += 1
                continue
            report.repaired.append(
                self.store.repair(parsed.key, parsed.fields, operator=operator, reason=reason)
            )

        logger.info(
            f'Backfilled {source.name} issue {snapshot.issue}: '
            f'{len(report.repaired)} repaired, {report.inserted} inserted, '
            f'{report.unchanged} unchanged, {report.rejected} rejected'
        )
        return report


def render_repair_log(records: Iterable[AuditRecord]) -> str:
    """Render audit records as the markdown "Repair Log" section.

    Records are grouped by issue (oldest first); each entry lists the
    changed fields with their old and new values.
    """
    by_issue: dict[date, list[AuditRecord]] = defaultdict(list)
    for record in records:
        by_issue[record.key.issue_date].append(record)

    lines = ['## Repair Log', '']
    if not by_issue:
        lines.append('No repairs have been applied.')
        return '\n'.join(lines) + '\n'

    for issue in sorted(by_issue):
        lines.append(f'### Issue {date_to_int(issue)}')
        lines.append('')
        for record in sorted(by_issue[issue], key=lambda r: (r.timestamp, r.key)):
            key = record.key
            changes = ', '.join(
                f'`{name}` {old} → {new}' for name, (old, new) in record.changed.items()
            ) or 'no change'
            lines.append(
                f'- {record.timestamp:%Y-%m-%d} ({record.operator}): '
                f'{key.entity_id} {date_to_int(key.observation_date)} '
                f'[{key.source_id}]: {changes}. {record.reason}'
            )
        lines.append('')
    return '\n'.join(lines)
