# ---------------------------------------------------------------------------
# hosp_vintages.config — Source configuration and project constants
# ---------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root
DATA_DIR = BASE_DIR / "data"
STORE_PATH = DATA_DIR / "versions.jsonl"
CACHE_DIR = BASE_DIR / ".cache" / "healthdata"

# Environment variable the HTTP service reads for its store location
STORE_PATH_ENV = "HOSP_VINTAGES_STORE"

# ---------------------------------------------------------------------------
# Query and ingest constants
# ---------------------------------------------------------------------------

# Resolved rows above this count return "too many results" instead of data
MAX_RESULTS = 100_000

# Default per-query deadline in seconds
QUERY_TIMEOUT_SECONDS = 30.0

# Rows written per ingest chunk
INGEST_CHUNK_SIZE = 500

# healthdata.gov metadata/CSV cache lifetime in seconds
CACHE_TTL_SECONDS = 3_600

# fsync the operation log after every append
FSYNC_LOG = True

MergePolicy = Literal["priority", "cadence"]

# Tie-break between sources publishing under the same issue date
MERGE_POLICY: MergePolicy = "priority"


# ---------------------------------------------------------------------------
# Source specification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceConfig:
    """Specification for a single upstream publication feed.

    Adding a new source requires only a new entry in ``SOURCES``.
    The resolver, ingestor and acquisition step adapt automatically.

    Parameters
    ----------
    name : str
        Source id used as the store key component (e.g. ``'state_daily'``).
    dataset_id : str
        healthdata.gov (Socrata) dataset identifier.
    record_type : str
        One-letter tag, ``'T'`` for timeseries and ``'D'`` for daily.
    cadence_days : tuple[int, int]
        Minimum and maximum days between publications.
    priority : int
        Rank among sources publishing under the same issue date; higher wins.
    date_column : str
        CSV column holding the observation date.
    """

    name: str
    dataset_id: str
    record_type: str
    cadence_days: tuple[int, int]
    priority: int
    date_column: str = "date"


# ---------------------------------------------------------------------------
# Active source list
# ---------------------------------------------------------------------------

SOURCES: list[SourceConfig] = [
    SourceConfig(
        name="state_timeseries",
        dataset_id="g62h-syeh",
        record_type="T",
        cadence_days=(7, 7),  # weekly full-history republication
        priority=1,
    ),
    SourceConfig(
        name="state_daily",
        dataset_id="6xf2-c3ie",
        record_type="D",
        cadence_days=(1, 6),  # irregular, layered on top of the timeseries
        priority=2,
        date_column="reporting_cutoff_start",
    ),
]
