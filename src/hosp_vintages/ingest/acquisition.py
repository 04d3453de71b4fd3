"""Acquisition: ingest each source's current publication when it is new.

A source is skipped when its current issue is not newer than the latest
issue already stored for it, so repeated runs are cheap and never re-ingest
a publication.
"""

from __future__ import annotations

import logging

import requests

from ..config import SourceConfig
from ..store.store import VersionStore
from .base import IngestReport
from .healthdata import HealthDataClient
from .ingestor import Ingestor

logger = logging.getLogger(__name__)


def update_source(
    source: SourceConfig,
    ingestor: Ingestor,
    client: HealthDataClient,
) -> IngestReport | None:
    """Ingest the current publication of *source* if it is newer than the store.

    Returns
    -------
    IngestReport or None
        None when the store is already up to date.
    """
    issue = client.get_issue(source.dataset_id)
    latest = ingestor.store.max_issue(source.name)
    if latest is not None and issue <= latest:
        logger.info(f'{source.name} is up to date (stored {latest}, published {issue})')
        return None

    snapshot = client.fetch_snapshot(source)
    return ingestor.ingest(source.name, snapshot)


def update_all(
    store: VersionStore,
    client: HealthDataClient | None = None,
    ingestor: Ingestor | None = None,
) -> dict[str, IngestReport | None]:
    """Update every configured source, continuing past a failing one.

    Parameters
    ----------
    store : VersionStore
        Destination store.
    client : HealthDataClient, optional
        Client to use; a new one is created (and closed) when omitted.
    ingestor : Ingestor, optional
        Ingestor to use; defaults to one over *store* with the configured
        sources.

    Returns
    -------
    dict[str, IngestReport | None]
        Report per source name; None for up-to-date or failed sources.
    """
    if ingestor is None:
        ingestor = Ingestor(store)
    owns_client = client is None
    if client is None:
        client = HealthDataClient()

    results: dict[str, IngestReport | None] = {}
    try:
        for source in ingestor.registry:
            try:
                results[source.name] = update_source(source, ingestor, client)
            except (requests.RequestException, ValueError) as e:
                logger.warning(f'Source {source.name} update failed: {e}')
                results[source.name] = None
    finally:
        if owns_client:
            client.close()

    return results
