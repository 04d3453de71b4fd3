"""Snapshot ingestion into the Version store.

Rows are validated and written one at a time in chunks. A malformed row or
a key conflict is logged and counted on the report; the rest of the
snapshot still ingests.
"""

from __future__ import annotations

import logging
from itertools import islice

from ..config import INGEST_CHUNK_SIZE
from ..errors import ConflictError, SchemaError
from ..merge.registry import SourceRegistry
from ..store.store import VersionStore
from .base import IngestReport, Snapshot, parse_snapshot

logger = logging.getLogger(__name__)


class Ingestor:
    """Writes parsed snapshots to a store.

    Parameters
    ----------
    store : VersionStore
        Destination store.
    registry : SourceRegistry, optional
        Known sources. Defaults to the configured SOURCES.
    chunk_size : int
        Rows handled per chunk.
    """

    def __init__(
        self,
        store: VersionStore,
        registry: SourceRegistry | None = None,
        chunk_size: int = INGEST_CHUNK_SIZE,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f'chunk_size must be positive, got {chunk_size}')
        self.store = store
        self.registry = registry if registry is not None else SourceRegistry()
        self.chunk_size = chunk_size

    def ingest(self, source_id: str, snapshot: Snapshot) -> IngestReport:
        """Ingest one publication of *source_id*.

        Every Version written shares ``snapshot.issue``. Observation dates
        already covered by an earlier issue become new Versions.

        Parameters
        ----------
        source_id : str
            Configured source name.
        snapshot : Snapshot
            The publication to ingest.

        Returns
        -------
        IngestReport
            Counts of written, unchanged, rejected and conflicting rows.

        Raises
        ------
        KeyError
            If *source_id* is not a configured source.
        SchemaError
            If the snapshot header is missing required columns.
        """
        source = self.registry.get(source_id)
        report = IngestReport(source_id=source.name, issue=snapshot.issue)
        rows = parse_snapshot(snapshot, source)

        n_chunk = 0
        while True:
            chunk = list(islice(rows, self.chunk_size))
            if not chunk:
                break
            n_chunk += 1
            for line, parsed in chunk:
                report.rows_seen += 1
                if isinstance(parsed, SchemaError):
                    report.rejected += 1
                    report.errors.append(parsed)
                    logger.warning(f'{source.name} issue {snapshot.issue}: rejected row: {parsed}')
                    continue
                try:
                    written = self.store.put(parsed)
                except ConflictError as e:
                    report.conflicts += 1
                    report.errors.append(e)
                    logger.warning(f'{source.name} issue {snapshot.issue}: line {line}: {e}')
                    continue
                if written:
                    report.written += 1
                else:
                    report.unchanged += 1
            logger.debug(
                f'{source.name} issue {snapshot.issue}: chunk {n_chunk} done '
                f'({report.rows_seen} rows so far)'
            )

        logger.info(
            f'Ingested {source.name} issue {snapshot.issue}: {report.written} written, '
            f'{report.unchanged} unchanged, {report.rejected} rejected, '
            f'{report.conflicts} conflicts'
        )
        return report
