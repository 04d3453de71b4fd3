"""Snapshot parsing and row validation against the declared column dictionary.

A raw snapshot is read into a header plus numbered rows of strings; each
row is then validated and cast on its own so that one malformed row can be
rejected without affecting the rest of the publication.
"""

from __future__ import annotations

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterator, Union

import polars as pl

from ..config import SourceConfig
from ..errors import SchemaError
from ..lookups.columns import FIELD_COLUMNS, REQUIRED_CSV_COLUMNS, ColumnSpec
from ..lookups.states import normalize_state
from ..store.records import Version

logger = logging.getLogger(__name__)

SnapshotData = Union[str, bytes, pl.DataFrame]

_INT_DTYPES = (pl.Int64, pl.Int32)


@dataclass(frozen=True)
class Snapshot:
    """One upstream publication.

    Parameters
    ----------
    issue : date
        Publication date; shared by every Version parsed from the snapshot.
    data : str | bytes | pl.DataFrame
        CSV text (with header row) or an already-loaded frame.
    """

    issue: date
    data: SnapshotData = field(repr=False)


@dataclass
class IngestReport:
    """Outcome of ingesting one snapshot."""

    source_id: str
    issue: date
    rows_seen: int = 0
    written: int = 0
    unchanged: int = 0
    rejected: int = 0
    conflicts: int = 0
    errors: list[Exception] = field(default_factory=list, repr=False)

    @property
    def ok(self) -> bool:
        return self.rejected == 0 and self.conflicts == 0


RawRow = Union[list[str], SchemaError]


def _decoded_lines(data: bytes, bad_lines: set[int]) -> Iterator[str]:
    """Decode *data* line by line; undecodable lines become blank and are noted."""
    for lineno, raw in enumerate(io.BytesIO(data), start=1):
        try:
            yield raw.decode('utf-8-sig' if lineno == 1 else 'utf-8')
        except UnicodeDecodeError:
            bad_lines.add(lineno)
            yield '\n'


def _csv_rows(reader, bad_lines: set[int]) -> Iterator[tuple[int, RawRow]]:
    while True:
        try:
            values = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            line = reader.line_num
            yield line, SchemaError(f'Line {line}: {e}', line=line)
            continue
        if values:
            yield reader.line_num, [v.strip() for v in values]
        elif reader.line_num in bad_lines:
            line = reader.line_num
            yield line, SchemaError(f'Line {line}: not valid UTF-8', line=line)


def read_snapshot(data: SnapshotData) -> tuple[list[str], Iterator[tuple[int, RawRow]]]:
    """Split a snapshot into its header and ``(line_number, values)`` rows.

    Line numbers count the header as line 1. Values are raw strings with
    surrounding whitespace removed; null frame cells become ``''``. A row
    the CSV reader cannot split, or a line that is not valid UTF-8, is
    yielded as a SchemaError in place of its values.

    Raises
    ------
    SchemaError
        If the header row itself cannot be read.
    """
    if isinstance(data, pl.DataFrame):
        header = list(data.columns)
        rows = (
            (i + 2, ['' if v is None else str(v).strip() for v in row])
            for i, row in enumerate(data.iter_rows())
        )
        return header, rows

    bad_lines: set[int] = set()
    if isinstance(data, bytes):
        reader = csv.reader(_decoded_lines(data, bad_lines))
    else:
        reader = csv.reader(io.StringIO(data))
    try:
        header = [h.strip() for h in next(reader, [])]
    except csv.Error as e:
        raise SchemaError(f'Unreadable header: {e}', line=1) from e
    return header, _csv_rows(reader, bad_lines)


def check_header(header: list[str], source: SourceConfig) -> None:
    """Reject a snapshot whose header lacks the required columns.

    Raises
    ------
    SchemaError
        If ``state`` or the source's date column is missing.
    """
    required = set(REQUIRED_CSV_COLUMNS) | {source.date_column}
    missing = required - set(header)
    if missing:
        raise SchemaError(
            f'Snapshot for {source.name} is missing required columns: {sorted(missing)}',
            line=1,
        )
    if len(set(header)) != len(header):
        raise SchemaError(f'Snapshot for {source.name} has duplicate column names', line=1)


def parse_date(text: str) -> date:
    """Parse an observation date in any of the formats the publisher has used.

    Accepts ``YYYY-MM-DD``, ``YYYY/MM/DD``, ``YYYYMMDD`` and Socrata
    floating timestamps (``YYYY-MM-DDT00:00:00.000``).
    """
    text = text.strip()
    if len(text) == 8 and text.isdigit():
        return date(int(text[:4]), int(text[4:6]), int(text[6:]))
    head = text[:10].replace('/', '-')
    return datetime.strptime(head, '%Y-%m-%d').date()


def cast_value(raw: str | None, spec: ColumnSpec) -> Any:
    """Cast one raw CSV value to its declared dtype; blanks become None.

    Raises
    ------
    ValueError
        If the value cannot be represented in the declared dtype.
    """
    if raw is None or raw == '':
        return None
    if spec.dtype == pl.Utf8:
        return raw
    number = float(raw)
    if not math.isfinite(number):
        raise ValueError(f'non-finite value {raw!r}')
    if spec.dtype in _INT_DTYPES:
        if not number.is_integer():
            raise ValueError(f'{raw!r} is not an integer')
        return int(number)
    return number


def parse_row(
    header: list[str],
    values: list[str],
    source: SourceConfig,
    issue: date,
    line: int,
) -> Version:
    """Validate one row's shape and values and build its Version.

    Raises
    ------
    SchemaError
        If the row has the wrong number of fields, an unknown state, an
        unparseable date, or a value that does not fit its column dtype.
    """
    if len(values) != len(header):
        raise SchemaError(
            f'Line {line}: expected {len(header)} fields, got {len(values)}', line=line
        )
    record = dict(zip(header, values))

    try:
        state = normalize_state(record['state'])
    except ValueError as e:
        raise SchemaError(f'Line {line}: {e}', line=line) from e

    try:
        observation_date = parse_date(record[source.date_column])
    except ValueError as e:
        raise SchemaError(
            f'Line {line}: bad {source.date_column} {record[source.date_column]!r}',
            line=line,
        ) from e

    fields: dict[str, Any] = {}
    for spec in FIELD_COLUMNS:
        raw = record.get(spec.csv_name)
        try:
            fields[spec.name] = cast_value(raw, spec)
        except ValueError as e:
            raise SchemaError(
                f'Line {line}: column {spec.csv_name!r}: {e}', line=line
            ) from e

    return Version(state, observation_date, issue, source.name, fields)


def parse_snapshot(
    snapshot: Snapshot,
    source: SourceConfig,
) -> Iterator[tuple[int, Version | SchemaError]]:
    """Yield ``(line, Version)`` or ``(line, SchemaError)`` for every row.

    Raises
    ------
    SchemaError
        If the header itself is unusable.
    """
    header, rows = read_snapshot(snapshot.data)
    check_header(header, source)
    extra = unknown_columns(header, source)
    if extra:
        logger.warning(f'Ignoring undeclared columns in {source.name} snapshot: {extra}')
    for line, values in rows:
        if isinstance(values, SchemaError):
            yield line, values
            continue
        try:
            yield line, parse_row(header, values, source, snapshot.issue, line)
        except SchemaError as e:
            yield line, e


def unknown_columns(header: list[str], source: SourceConfig) -> list[str]:
    """Header columns that are neither declared fields nor key columns."""
    known = {c.csv_name for c in FIELD_COLUMNS} | set(REQUIRED_CSV_COLUMNS)
    known.add(source.date_column)
    # the daily dataset carries both cutoff bounds; only the start is the date
    known.update({'date', 'reporting_cutoff_start', 'reporting_cutoff_end'})
    return [h for h in header if h not in known]
