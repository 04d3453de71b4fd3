"""Versioned record store over an append-only operation log."""

from .log import OperationLog
from .records import (
    AuditRecord,
    Version,
    VersionKey,
    date_to_int,
    int_to_date,
    versions_to_frame,
)
from .store import Scan, VersionStore

__all__ = [
    'AuditRecord',
    'OperationLog',
    'Scan',
    'Version',
    'VersionKey',
    'VersionStore',
    'date_to_int',
    'int_to_date',
    'versions_to_frame',
]
