"""Tests for hosp_vintages.query — resolution, versioned replay and envelopes."""

from datetime import date, datetime

import pytest

from hosp_vintages.errors import EmptyResult, InvalidQuery, QueryTimeout, TruncatedResult
from hosp_vintages.ingest import Ingestor, Snapshot
from hosp_vintages.query import DateRange, QueryEngine, frame_to_epidata, parse_dates, parse_states, respond
from hosp_vintages.store import Version, VersionStore


def _ingest(store: VersionStore, source: str, issue: date, rows: list[tuple]) -> None:
    date_column = 'reporting_cutoff_start' if source == 'state_daily' else 'date'
    lines = [f'state,{date_column},inpatient_beds']
    lines += [f'{s},{d},{beds}' for s, d, beds in rows]
    report = Ingestor(store).ingest(source, Snapshot(issue=issue, data='\n'.join(lines) + '\n'))
    assert report.ok


def _make_store() -> VersionStore:
    """MA 2020-05-10 reported 10 by the timeseries, then 12 by the daily feed."""
    store = VersionStore()
    _ingest(store, 'state_timeseries', date(2020, 11, 10), [('MA', '2020-05-10', 10)])
    _ingest(store, 'state_daily', date(2020, 11, 16), [('MA', '2020-05-10', 12)])
    return store


class TestQueryEngine:
    """Tests for QueryEngine.query."""

    def test_latest_issue_by_default(self):
        frame = QueryEngine(_make_store()).query('ma', '20200510')
        assert len(frame) == 1
        row = frame.row(0, named=True)
        assert row['inpatient_beds'] == 12
        assert row['issue'] == date(2020, 11, 16)
        assert frame.columns[:3] == ['state', 'date', 'issue']

    def test_as_of_earlier_issue(self):
        frame = QueryEngine(_make_store()).query('MA', '20200510', issue_dates='20201110')
        assert frame['inpatient_beds'].to_list() == [10]
        assert frame['issue'].to_list() == [date(2020, 11, 10)]

    def test_issue_range_returns_each_publication(self):
        frame = QueryEngine(_make_store()).query('MA', '20200510', '20201101-20201130')
        assert frame['issue'].to_list() == [date(2020, 11, 10), date(2020, 11, 16)]
        assert frame['inpatient_beds'].to_list() == [10, 12]

    def test_historical_answer_is_stable(self):
        """A later publication does not change what an earlier issue returns."""
        store = _make_store()
        engine = QueryEngine(store)
        before = engine.query('MA', '20200510', '20201110')

        _ingest(store, 'state_timeseries', date(2020, 11, 17), [('MA', '2020-05-10', 14)])

        assert engine.query('MA', '20200510', '20201110').equals(before)
        assert engine.query('MA', '20200510')['inpatient_beds'].to_list() == [14]

    def test_same_issue_tie_prefers_daily(self):
        store = _make_store()
        _ingest(store, 'state_timeseries', date(2020, 11, 16), [('MA', '2020-05-10', 11)])
        frame = QueryEngine(store).query('MA', '20200510')
        assert frame['inpatient_beds'].to_list() == [12]
        frame = QueryEngine(store).query('MA', '20200510', '20201116')
        assert frame['inpatient_beds'].to_list() == [12]

    def test_date_ranges_and_lists(self):
        store = VersionStore()
        _ingest(
            store,
            'state_timeseries',
            date(2020, 11, 10),
            [('MA', f'2020-05-{d:02d}', d) for d in range(1, 11)]
            + [('NY', '2020-05-05', 50)],
        )
        engine = QueryEngine(store)

        frame = engine.query('MA,NY', '20200502-20200504,20200505')
        assert list(zip(frame['state'], frame['inpatient_beds'])) == [
            ('MA', 2),
            ('MA', 3),
            ('MA', 4),
            ('MA', 5),
            ('NY', 50),
        ]

    def test_too_many_results(self):
        store = VersionStore()
        _ingest(
            store,
            'state_timeseries',
            date(2020, 11, 10),
            [('MA', '2020-05-10', 1), ('NY', '2020-05-10', 2), ('CA', '2020-05-10', 3)],
        )
        with pytest.raises(TruncatedResult) as exc_info:
            QueryEngine(store, max_results=2).query('MA,NY,CA', '20200510')
        assert exc_info.value.n_rows == 3

        frame = QueryEngine(store, max_results=3).query('MA,NY,CA', '20200510')
        assert frame['state'].to_list() == ['CA', 'MA', 'NY']

    def test_no_results(self):
        with pytest.raises(EmptyResult):
            QueryEngine(_make_store()).query('NY', '20200510')
        with pytest.raises(EmptyResult):
            QueryEngine(_make_store()).query('MA', '20200510', '20201101')

    @pytest.mark.parametrize(
        'states,dates',
        [
            (None, '20200510'),
            ('', '20200510'),
            ('MA', None),
            ('XX', '20200510'),
            ('MA', '2020051'),
            ('MA', '20200512-20200510'),
        ],
    )
    def test_invalid_query(self, states, dates):
        with pytest.raises(InvalidQuery):
            QueryEngine(_make_store()).query(states, dates)

    def test_timeout(self):
        with pytest.raises(QueryTimeout):
            QueryEngine(_make_store()).query('MA', '20200510', timeout=-1)


class TestEnvelope:
    """Tests for respond and frame_to_epidata."""

    def test_success(self):
        envelope = respond(QueryEngine(_make_store()), 'MA', '20200510')
        assert envelope['result'] == 1
        assert envelope['message'] == 'success'
        (row,) = envelope['epidata']
        assert row['state'] == 'MA'
        assert row['date'] == 20200510
        assert row['issue'] == 20201116
        assert row['inpatient_beds'] == 12
        assert row['inpatient_beds_used'] is None

    def test_error_codes(self):
        engine = QueryEngine(_make_store(), max_results=0)
        assert respond(engine, 'MA', '20200510') == {
            'result': 2,
            'epidata': [],
            'message': 'too many results',
        }

        engine = QueryEngine(_make_store())
        assert respond(engine, 'NY', '20200510')['result'] == -2
        assert respond(engine, 'XX', '20200510')['result'] == -1
        assert respond(engine, 'MA', '20200510', timeout=-1)['result'] == -1

    def test_frame_to_epidata_dates(self):
        frame = QueryEngine(_make_store()).query('MA', '20200510', '20201110-20201116')
        rows = frame_to_epidata(frame)
        assert [(r['date'], r['issue']) for r in rows] == [
            (20200510, 20201110),
            (20200510, 20201116),
        ]


class TestParams:
    """Tests for parameter parsing."""

    def test_parse_dates(self):
        assert parse_dates('20200510') == [DateRange(date(2020, 5, 10), date(2020, 5, 10))]
        assert parse_dates('20200512,20200501-20200503') == [
            DateRange(date(2020, 5, 1), date(2020, 5, 3)),
            DateRange(date(2020, 5, 12), date(2020, 5, 12)),
        ]
        assert parse_dates([20200510, {'from': 20200501, 'to': 20200502}]) == [
            DateRange(date(2020, 5, 1), date(2020, 5, 2)),
            DateRange(date(2020, 5, 10), date(2020, 5, 10)),
        ]
        assert parse_dates((date(2020, 5, 1), date(2020, 5, 2))) == [
            DateRange(date(2020, 5, 1), date(2020, 5, 2))
        ]
        assert parse_dates(None) == []

    def test_parse_dates_datetime(self):
        assert parse_dates(datetime(2020, 5, 10, 13, 30)) == [
            DateRange(date(2020, 5, 10), date(2020, 5, 10))
        ]
        frame = QueryEngine(_make_store()).query(
            'MA', [datetime(2020, 5, 10, 8)], issue_dates=(datetime(2020, 11, 1), datetime(2020, 11, 10, 23))
        )
        assert frame['inpatient_beds'].to_list() == [10]

    def test_parse_dates_invalid(self):
        for bad in ('2020-05-10', '20201340', 'yesterday', [{'from': 20200501}]):
            with pytest.raises(InvalidQuery):
                parse_dates(bad)

    def test_parse_states(self):
        assert parse_states('ny,MA, ma') == ['MA', 'NY']
        assert parse_states(['pr', 'dc']) == ['DC', 'PR']
        with pytest.raises(InvalidQuery):
            parse_states('MA,ZZ')


class TestUnconfiguredSource:
    def test_versions_from_unknown_sources_are_ignored(self):
        store = _make_store()
        store.put(Version('MA', date(2020, 5, 10), date(2020, 12, 1), 'county_daily', {'inpatient_beds': 99}))
        frame = QueryEngine(store).query('MA', '20200510')
        assert frame['inpatient_beds'].to_list() == [12]
