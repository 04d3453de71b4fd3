"""Append-only JSON-lines operation log backing the Version store.

Each line is one operation, either ``{"op": "ingest", "version": {...}}`` or
``{"op": "repair", "key": {...}, "old": {...}, "new": {...}, ...}``. The
store's state is a left fold over these entries in file order.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterator

from ..config import FSYNC_LOG

logger = logging.getLogger(__name__)


class OperationLog:
    """Durable, ordered sequence of store operations.

    Parameters
    ----------
    path : Path or None
        JSON-lines file. ``None`` keeps the log in memory (tests, scratch
        stores).
    fsync : bool
        Force every append to disk before returning.
    """

    def __init__(self, path: Path | str | None = None, fsync: bool = FSYNC_LOG) -> None:
        self.path = Path(path) if path is not None else None
        self.fsync = fsync
        self._lock = threading.Lock()
        self._memory: list[str] = []
        self._handle = None

        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._drop_torn_tail()
            self._handle = self.path.open('a', encoding='utf-8')

    def append(self, entry: dict[str, Any]) -> None:
        """Write one entry; returns only once it is flushed (and fsynced)."""
        line = json.dumps(entry, sort_keys=True)
        with self._lock:
            if self.path is not None and self._handle is None:
                raise ValueError(f'Operation log {self.path} is closed')
            if self._handle is None:
                self._memory.append(line)
                return
            self._handle.write(line + '\n')
            self._handle.flush()
            if self.fsync:
                os.fsync(self._handle.fileno())

    def replay(self) -> Iterator[dict[str, Any]]:
        """Yield every entry in append order."""
        if self.path is None:
            for line in list(self._memory):
                yield json.loads(line)
            return

        with self.path.open('r', encoding='utf-8') as fh:
            for lineno, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        f'Corrupt operation log {self.path} at line {lineno}: {e}'
                    ) from e

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def _drop_torn_tail(self) -> None:
        '''Truncate a partially written final line left by a crash mid-append.'''
        if not self.path.exists():
            return
        with self.path.open('rb+') as fh:
            data = fh.read()
            if not data or data.endswith(b'\n'):
                return
            cut = data.rfind(b'\n') + 1
            logger.warning(
                f'Dropping torn final entry ({len(data) - cut} bytes) from {self.path}'
            )
            fh.truncate(cut)
