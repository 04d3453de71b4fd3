"""Declared column dictionary for the HHS state hospital-capacity datasets.

Both the weekly timeseries and the daily dataset publish the same field set;
only the column holding the observation date differs (see
``SourceConfig.date_column``). Aggregated count fields are paired with a
``_coverage`` field giving the number of hospitals that reported; the
utilization ratios additionally carry their numerator and denominator.
"""

from __future__ import annotations

from dataclasses import dataclass

import polars as pl


@dataclass(frozen=True)
class ColumnSpec:
    """One declared column.

    Parameters
    ----------
    csv_name : str
        Header name in the published CSV.
    name : str
        Field name in stored Versions and query results.
    dtype : pl.DataType
        Polars dtype values are cast to.
    """

    csv_name: str
    name: str
    dtype: pl.DataType


def _plain(name: str, dtype: pl.DataType = pl.Int64) -> list[ColumnSpec]:
    return [ColumnSpec(name, name, dtype)]


def _count(name: str) -> list[ColumnSpec]:
    return [
        ColumnSpec(name, name, pl.Int64),
        ColumnSpec(f'{name}_coverage', f'{name}_coverage', pl.Int32),
    ]


def _ratio(name: str) -> list[ColumnSpec]:
    return [
        ColumnSpec(name, name, pl.Float64),
        ColumnSpec(f'{name}_coverage', f'{name}_coverage', pl.Int32),
        ColumnSpec(f'{name}_numerator', f'{name}_numerator', pl.Float64),
        ColumnSpec(f'{name}_denominator', f'{name}_denominator', pl.Float64),
    ]


FIELD_COLUMNS: list[ColumnSpec] = [
    *_plain('critical_staffing_shortage_today_yes'),
    *_plain('critical_staffing_shortage_today_no'),
    *_plain('critical_staffing_shortage_today_not_reported'),
    *_plain('critical_staffing_shortage_anticipated_within_week_yes'),
    *_plain('critical_staffing_shortage_anticipated_within_week_no'),
    *_plain('critical_staffing_shortage_anticipated_within_week_not_reported'),
    *_count('hospital_onset_covid'),
    *_count('inpatient_beds'),
    *_count('inpatient_beds_used'),
    *_count('inpatient_beds_used_covid'),
    *_count('previous_day_admission_adult_covid_confirmed'),
    *_count('previous_day_admission_adult_covid_suspected'),
    *_count('previous_day_admission_pediatric_covid_confirmed'),
    *_count('previous_day_admission_pediatric_covid_suspected'),
    *_count('staffed_adult_icu_bed_occupancy'),
    *_count('staffed_icu_adult_patients_confirmed_and_suspected_covid'),
    *_count('staffed_icu_adult_patients_confirmed_covid'),
    *_count('total_adult_patients_hospitalized_confirmed_and_suspected_covid'),
    *_count('total_adult_patients_hospitalized_confirmed_covid'),
    *_count('total_pediatric_patients_hospitalized_confirmed_and_suspected_covid'),
    *_count('total_pediatric_patients_hospitalized_confirmed_covid'),
    *_count('total_staffed_adult_icu_beds'),
    *_ratio('inpatient_beds_utilization'),
    *_ratio('percent_of_inpatients_with_covid'),
    *_ratio('inpatient_bed_covid_utilization'),
    *_ratio('adult_icu_bed_covid_utilization'),
    *_ratio('adult_icu_bed_utilization'),
    *_plain('geocoded_state', pl.Utf8),
]

FIELD_NAMES: tuple[str, ...] = tuple(c.name for c in FIELD_COLUMNS)

# Columns every published row must carry besides the date column
REQUIRED_CSV_COLUMNS: frozenset[str] = frozenset({'state'})

# Schema of resolved query results, in output order
RESULT_SCHEMA: dict[str, pl.DataType] = {
    'state': pl.Utf8,
    'date': pl.Date,
    'issue': pl.Date,
    **{c.name: c.dtype for c in FIELD_COLUMNS},
}


def columns_by_csv_name() -> dict[str, ColumnSpec]:
    """Return the field columns keyed by their CSV header name."""
    return {c.csv_name: c for c in FIELD_COLUMNS}
