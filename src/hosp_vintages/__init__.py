# ---------------------------------------------------------------------------
# hosp_vintages — versioned hospital-capacity time-series store and query API
# ---------------------------------------------------------------------------
"""Point-in-time-correct answers to "what did we know about state L, date D,
as of issue I?" over periodically republished HHS hospital-capacity data."""

from .config import DATA_DIR, SOURCES, STORE_PATH, SourceConfig
from .errors import (
    ConflictError,
    EmptyResult,
    InvalidQuery,
    NotFound,
    QueryTimeout,
    SchemaError,
    TruncatedResult,
)
from .ingest import HealthDataClient, IngestReport, Ingestor, Snapshot, update_all
from .merge import MergeResolver, SourceRegistry, merged_view
from .query import QueryEngine, respond
from .repair import BackfillReport, RepairTool, render_repair_log
from .store import AuditRecord, Version, VersionKey, VersionStore

__all__ = [
    "DATA_DIR",
    "SOURCES",
    "STORE_PATH",
    "SourceConfig",
    # Errors
    "ConflictError",
    "EmptyResult",
    "InvalidQuery",
    "NotFound",
    "QueryTimeout",
    "SchemaError",
    "TruncatedResult",
    # Store
    "AuditRecord",
    "Version",
    "VersionKey",
    "VersionStore",
    # Ingest
    "HealthDataClient",
    "IngestReport",
    "Ingestor",
    "Snapshot",
    "update_all",
    # Merge and query
    "MergeResolver",
    "SourceRegistry",
    "merged_view",
    "QueryEngine",
    "respond",
    # Repair
    "BackfillReport",
    "RepairTool",
    "render_repair_log",
]
