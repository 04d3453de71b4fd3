"""Snapshot ingestion: parsing, validation, acquisition and store writes."""

from .acquisition import update_all, update_source
from .base import IngestReport, Snapshot, parse_snapshot
from .healthdata import HealthDataClient
from .ingestor import Ingestor

__all__ = [
    'HealthDataClient',
    'IngestReport',
    'Ingestor',
    'Snapshot',
    'parse_snapshot',
    'update_all',
    'update_source',
]
