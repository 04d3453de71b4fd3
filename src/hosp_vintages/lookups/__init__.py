"""Static reference tables: reporting entities and the dataset column dictionary."""

from .columns import (
    FIELD_COLUMNS,
    FIELD_NAMES,
    REQUIRED_CSV_COLUMNS,
    RESULT_SCHEMA,
    ColumnSpec,
    columns_by_csv_name,
)
from .states import STATE_CODES, normalize_state

__all__ = [
    'FIELD_COLUMNS',
    'FIELD_NAMES',
    'REQUIRED_CSV_COLUMNS',
    'RESULT_SCHEMA',
    'STATE_CODES',
    'ColumnSpec',
    'columns_by_csv_name',
    'normalize_state',
]
