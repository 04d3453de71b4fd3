"""Tests for hosp_vintages.repair — audited corrections, backfills and the repair log."""

from datetime import date

import pytest

from hosp_vintages.errors import ConflictError, NotFound, SchemaError
from hosp_vintages.ingest import Ingestor, Snapshot
from hosp_vintages.query import QueryEngine
from hosp_vintages.repair import RepairTool, render_repair_log
from hosp_vintages.store import Version, VersionStore

_OBS = date(2020, 5, 10)
_TS_ISSUE = date(2020, 11, 10)
_DAILY_ISSUE = date(2020, 11, 16)


def _ingest(store: VersionStore, source: str, issue: date, text: str) -> None:
    Ingestor(store).ingest(source, Snapshot(issue=issue, data=text))


def _make_store(path=None) -> VersionStore:
    store = VersionStore(path, fsync=False)
    _ingest(
        store,
        'state_timeseries',
        _TS_ISSUE,
        'state,date,inpatient_beds,inpatient_beds_used\nMA,2020-05-10,10,4\n',
    )
    _ingest(
        store,
        'state_daily',
        _DAILY_ISSUE,
        'state,reporting_cutoff_start,inpatient_beds,inpatient_beds_used\n'
        'MA,2020-05-10,12,5\n',
    )
    return store


class TestRepair:
    """Tests for RepairTool.repair."""

    def test_repair_is_visible_and_audited(self):
        store = _make_store()
        tool = RepairTool(store)

        record = tool.repair(
            'MA', _OBS, _DAILY_ISSUE, {'inpatient_beds': 15}, operator='ops', reason='typo'
        )

        frame = QueryEngine(store).query('MA', '20200510')
        assert frame['inpatient_beds'].to_list() == [15]
        assert frame['issue'].to_list() == [_DAILY_ISSUE]

        assert record.key.source_id == 'state_daily'
        assert record.old['inpatient_beds'] == 12
        assert record.new['inpatient_beds'] == 15
        assert record.changed == {'inpatient_beds': (12, 15)}
        assert record.operator == 'ops'
        assert record.reason == 'typo'

    def test_unnamed_fields_are_kept(self):
        store = _make_store()
        RepairTool(store).repair(
            'ma', _OBS, _DAILY_ISSUE, {'inpatient_beds': 15}, operator='ops', reason='typo'
        )
        fields = store.get('MA', _OBS, _DAILY_ISSUE).fields
        assert fields['inpatient_beds_used'] == 5

    def test_repeat_repair_is_idempotent(self):
        store = _make_store()
        tool = RepairTool(store)
        for _ in range(2):
            tool.repair('MA', _OBS, _DAILY_ISSUE, {'inpatient_beds': 15}, operator='ops', reason='typo')

        assert store.get('MA', _OBS, _DAILY_ISSUE).fields['inpatient_beds'] == 15
        audit = store.audit_log()
        assert len(audit) == 2
        assert audit[1].changed == {}

    def test_other_issues_untouched(self):
        store = _make_store()
        RepairTool(store).repair(
            'MA', _OBS, _DAILY_ISSUE, {'inpatient_beds': 15}, operator='ops', reason='typo'
        )
        frame = QueryEngine(store).query('MA', '20200510', '20201110')
        assert frame['inpatient_beds'].to_list() == [10]

    def test_explicit_source(self):
        store = _make_store()
        _ingest(
            store,
            'state_timeseries',
            _DAILY_ISSUE,
            'state,date,inpatient_beds\nMA,2020-05-10,11\n',
        )
        tool = RepairTool(store)
        record = tool.repair(
            'MA',
            _OBS,
            _DAILY_ISSUE,
            {'inpatient_beds': 13},
            operator='ops',
            reason='typo',
            source_id='state_timeseries',
        )
        assert record.key.source_id == 'state_timeseries'
        assert store.get('MA', _OBS, _DAILY_ISSUE, 'state_daily').fields['inpatient_beds'] == 12

        # without a source the authoritative one at that issue is corrected
        record = tool.repair('MA', _OBS, _DAILY_ISSUE, {'inpatient_beds': 16}, operator='ops', reason='typo')
        assert record.key.source_id == 'state_daily'

    def test_unconfigured_source_is_not_a_target(self):
        store = _make_store()
        store.put(Version('MA', _OBS, _DAILY_ISSUE, 'county_daily', {'inpatient_beds': 99}))
        store.put(Version('NY', _OBS, _DAILY_ISSUE, 'county_daily', {'inpatient_beds': 7}))
        tool = RepairTool(store)

        record = tool.repair('MA', _OBS, _DAILY_ISSUE, {'inpatient_beds': 15}, operator='ops', reason='typo')
        assert record.key.source_id == 'state_daily'
        assert store.get('MA', _OBS, _DAILY_ISSUE, 'county_daily').fields['inpatient_beds'] == 99

        with pytest.raises(NotFound):
            tool.repair('NY', _OBS, _DAILY_ISSUE, {'inpatient_beds': 8}, operator='ops', reason='typo')

    def test_missing_version(self):
        tool = RepairTool(_make_store())
        with pytest.raises(NotFound):
            tool.repair('MA', _OBS, date(2020, 11, 11), {'inpatient_beds': 1}, operator='ops', reason='x')
        with pytest.raises(NotFound):
            tool.repair(
                'MA', _OBS, _TS_ISSUE, {'inpatient_beds': 1},
                operator='ops', reason='x', source_id='state_daily',
            )

    @pytest.mark.parametrize(
        'fields',
        [
            {'not_a_column': 1},
            {'inpatient_beds': 'ten'},
            {'inpatient_beds': 1.5},
            {'inpatient_beds': True},
        ],
    )
    def test_invalid_fields(self, fields):
        store = _make_store()
        with pytest.raises(SchemaError):
            RepairTool(store).repair('MA', _OBS, _DAILY_ISSUE, fields, operator='ops', reason='x')
        assert store.audit_log() == []

    def test_put_cannot_bypass_repair(self):
        store = _make_store()
        current = store.get('MA', _OBS, _DAILY_ISSUE)
        with pytest.raises(ConflictError):
            store.put(current.with_fields({**current.fields, 'inpatient_beds': 15}))

    def test_repairs_survive_reopen(self, tmp_path):
        path = tmp_path / 'versions.jsonl'
        store = _make_store(path)
        RepairTool(store).repair(
            'MA', _OBS, _DAILY_ISSUE, {'inpatient_beds': 15}, operator='ops', reason='typo'
        )
        store.close()

        with VersionStore(path, fsync=False) as reopened:
            frame = QueryEngine(reopened).query('MA', '20200510')
            assert frame['inpatient_beds'].to_list() == [15]
            assert len(reopened.audit_log()) == 1


class TestBackfill:
    """Tests for RepairTool.backfill."""

    def test_misaligned_snapshot_is_corrected(self):
        store = VersionStore()
        # columns were swapped at ingest time
        _ingest(
            store,
            'state_timeseries',
            _TS_ISSUE,
            'state,date,inpatient_beds,inpatient_beds_used\n'
            'MA,2020-05-10,4,10\n'
            'NY,2020-05-10,30,20\n',
        )
        corrected = (
            'state,date,inpatient_beds,inpatient_beds_used\n'
            'MA,2020-05-10,10,4\n'
            'NY,2020-05-10,30,20\n'
            'CA,2020-05-10,50,25\n'
            'ZZ,2020-05-10,1,1\n'
        )
        report = RepairTool(store).backfill(
            'state_timeseries',
            Snapshot(issue=_TS_ISSUE, data=corrected),
            operator='ops',
            reason='column swap',
        )

        assert len(report.repaired) == 1
        assert report.repaired[0].changed == {
            'inpatient_beds': (4, 10),
            'inpatient_beds_used': (10, 4),
        }
        assert report.inserted == 1
        assert report.unchanged == 1
        assert report.rejected == 1
        assert store.get('CA', _OBS, _TS_ISSUE).fields['inpatient_beds'] == 50
        assert store.get('MA', _OBS, _TS_ISSUE).fields['inpatient_beds'] == 10

    def test_unknown_source(self):
        with pytest.raises(KeyError):
            RepairTool(VersionStore()).backfill(
                'county_daily', Snapshot(issue=_TS_ISSUE, data='state,date\n'), 'ops', 'x'
            )


class TestRepairLog:
    """Tests for render_repair_log."""

    def test_render(self):
        store = _make_store()
        tool = RepairTool(store)
        tool.repair('MA', _OBS, _DAILY_ISSUE, {'inpatient_beds': 15}, operator='ops', reason='Typo in upstream.')
        tool.repair('MA', _OBS, _TS_ISSUE, {'inpatient_beds_used': 6}, operator='ana', reason='Resubmitted.')

        text = render_repair_log(store.audit_log())

        assert text.startswith('## Repair Log')
        assert text.index('### Issue 20201110') < text.index('### Issue 20201116')
        assert '(ops): MA 20200510 [state_daily]: `inpatient_beds` 12 → 15. Typo in upstream.' in text
        assert '`inpatient_beds_used` 4 → 6. Resubmitted.' in text

    def test_render_empty(self):
        assert 'No repairs have been applied.' in render_repair_log([])
