'''
HTTP client for the healthdata.gov (Socrata) hospital-capacity datasets.

Provides:
- dataset metadata (``/api/views/{id}.json``), from which the issue date
  of the current publication is derived
- the full rows CSV (``/api/views/{id}/rows.csv``) as a Snapshot
'''

from __future__ import annotations

import json
import logging
import os
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import requests

from ..config import CACHE_DIR, CACHE_TTL_SECONDS, SourceConfig
from .base import Snapshot

logger = logging.getLogger(__name__)

_USER_AGENT = (
    'hosp-vintages/0.1.0 '
    '(Python) '
    'requests/{req_version}'
).format(req_version=requests.__version__)


class HealthDataClient:
    '''
    Client for healthdata.gov dataset metadata and CSV exports.

    Parameters
    ----------
    cache_dir : str or Path
        Local directory for cached downloads.
    cache_ttl : int
        Cache time-to-live in seconds.
    timeout : int
        Per-request timeout in seconds.
    '''

    BASE_URL = 'https://healthdata.gov/api/views'

    def __init__(
        self,
        cache_dir: str | Path = CACHE_DIR,
        cache_ttl: int = CACHE_TTL_SECONDS,
        timeout: int = 60,
    ) -> None:
        self.cache_dir = str(cache_dir)
        self.cache_ttl = cache_ttl
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers['User-Agent'] = _USER_AGENT

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_metadata(self, dataset_id: str) -> dict[str, Any]:
        '''
        Fetch the Socrata view metadata for a dataset.

        Parameters
        ----------
        dataset_id : str
            Dataset identifier (e.g. ``'g62h-syeh'``).

        Returns
        -------
        dict
            Parsed metadata JSON.
        '''
        cache_path = self._cache_path(f'{dataset_id}.json')
        if self._is_cache_valid(cache_path):
            with open(cache_path, 'r', encoding='utf-8') as fh:
                return json.load(fh)

        url = f'{self.BASE_URL}/{dataset_id}.json'
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()
        self._write_cache(cache_path, response.text)
        return response.json()

    def get_issue(self, dataset_id: str) -> date:
        '''Return the issue date of the dataset's current publication.'''
        return self._parse_issue(self.get_metadata(dataset_id))

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    def get_rows_csv(self, dataset_id: str, issue: date) -> str:
        '''
        Download the rows CSV of the current publication.

        The cache is keyed by issue, so a cached export is never served
        for a newer publication and never expires.
        '''
        cache_path = self._cache_path(f'{dataset_id}_{issue:%Y%m%d}.csv')
        if os.path.exists(cache_path):
            with open(cache_path, 'r', encoding='utf-8') as fh:
                return fh.read()

        url = f'{self.BASE_URL}/{dataset_id}/rows.csv'
        response = self.session.get(
            url, params={'accessType': 'DOWNLOAD'}, timeout=self.timeout
        )
        response.raise_for_status()
        self._write_cache(cache_path, response.text)
        return response.text

    def fetch_snapshot(self, source: SourceConfig) -> Snapshot:
        '''Fetch the current publication of *source* as a Snapshot.'''
        issue = self.get_issue(source.dataset_id)
        logger.info(f'Downloading {source.name} ({source.dataset_id}) issue {issue}')
        return Snapshot(issue=issue, data=self.get_rows_csv(source.dataset_id, issue))

    # ------------------------------------------------------------------
    # Internal: caching
    # ------------------------------------------------------------------

    def _cache_path(self, filename: str) -> str:
        '''Return the local cache file path for a given filename.'''
        safe_name = filename.replace('/', '_').replace('\\', '_')
        return os.path.join(self.cache_dir, safe_name)

    def _is_cache_valid(self, path: str) -> bool:
        '''Check whether a cached file exists and is within TTL.'''
        if not os.path.exists(path):
            return False
        age = time.time() - os.path.getmtime(path)
        return age < self.cache_ttl

    def _write_cache(self, path: str, text: str) -> None:
        os.makedirs(self.cache_dir, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as fh:
            fh.write(text)

    @staticmethod
    def _parse_issue(metadata: dict[str, Any]) -> date:
        '''
        Derive the issue date from view metadata.

        ``rowsUpdatedAt`` is the epoch second at which the rows were last
        republished; its UTC calendar date is the issue.

        Raises
        ------
        ValueError
            If the metadata carries no usable update timestamp.
        '''
        updated = metadata.get('rowsUpdatedAt')
        if updated is None:
            raise ValueError(
                f'Metadata for {metadata.get("id", "?")!r} has no rowsUpdatedAt'
            )
        try:
            stamp = int(updated)
        except (TypeError, ValueError) as e:
            raise ValueError(f'Bad rowsUpdatedAt value: {updated!r}') from e
        return datetime.fromtimestamp(stamp, tz=timezone.utc).date()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        '''Close the HTTP session.'''
        self.session.close()

    def __enter__(self) -> 'HealthDataClient':
        return self

    def __exit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        self.close()
