"""
Tests for the two upsert stores: TimesheetRollupStore and JobKpiStore.
"""

from datetime import date
from decimal import Decimal

import pytest

from kpi_kernel.domain.types import EmployeeDayRollup
from kpi_kernel.models import KPI_FIELDS
from kpi_kernel.services.job_kpi_store import JobKpiStore
from kpi_kernel.services.timesheet_rollup_store import TimesheetRollupStore

OWNER = "15551234567"
DAY = date(2024, 3, 4)


def rollup(name, job_no, shift, brk=0, drive=0):
    return EmployeeDayRollup(
        employee_name=name,
        job_no=job_no,
        shift_minutes=shift,
        break_minutes=brk,
        drive_minutes=drive,
    )


@pytest.fixture
def rollups(session, deterministic_clock):
    return TimesheetRollupStore(session, deterministic_clock)


@pytest.fixture
def kpis(session, deterministic_clock):
    return JobKpiStore(session, deterministic_clock)


class TestTimesheetRollupStore:
    def test_replace_day_writes_rows(self, rollups):
        written = rollups.replace_day(
            OWNER, DAY, [rollup("mike", 8, 510, 30), rollup("zoe", 3, 60, 0, 15)]
        )

        assert written == 2
        stored = rollups.rows_for_day(OWNER, DAY)
        assert stored == [rollup("mike", 8, 510, 30), rollup("zoe", 3, 60, 0, 15)]
        assert stored[0].paid_minutes == 480

    def test_rerun_replaces_minutes(self, rollups):
        rollups.replace_day(OWNER, DAY, [rollup("mike", 8, 510, 30)])
        rollups.replace_day(OWNER, DAY, [rollup("mike", 8, 540, 30)])

        assert rollups.rows_for_day(OWNER, DAY) == [rollup("mike", 8, 540, 30)]

    def test_keys_no_longer_produced_are_removed(self, rollups):
        rollups.replace_day(OWNER, DAY, [rollup("mike", 8, 510), rollup("zoe", 3, 60)])
        # Mike's punches were re-tagged to job 9; Zoe's were deleted
        rollups.replace_day(OWNER, DAY, [rollup("mike", 9, 510)])

        assert rollups.rows_for_day(OWNER, DAY) == [rollup("mike", 9, 510)]

    def test_unattributed_rows_do_not_accumulate(self, rollups):
        rollups.replace_day(OWNER, DAY, [rollup("mike", None, 120)])
        rollups.replace_day(OWNER, DAY, [rollup("mike", None, 150)])

        assert rollups.rows_for_day(OWNER, DAY) == [rollup("mike", None, 150)]

    def test_empty_day_clears_rows(self, rollups):
        rollups.replace_day(OWNER, DAY, [rollup("mike", 8, 60)])

        assert rollups.replace_day(OWNER, DAY, []) == 0
        assert rollups.rows_for_day(OWNER, DAY) == []

    def test_other_days_are_untouched(self, rollups):
        other_day = date(2024, 3, 5)
        rollups.replace_day(OWNER, other_day, [rollup("mike", 8, 60)])
        rollups.replace_day(OWNER, DAY, [])

        assert rollups.rows_for_day(OWNER, other_day) == [rollup("mike", 8, 60)]


class TestJobKpiStore:
    def test_merge_creates_row(self, kpis):
        kpis.merge(OWNER, DAY, 8, {"paid_minutes": 480, "labour_cost": Decimal("200.00")})

        row = kpis.get(OWNER, DAY, 8)
        assert row["paid_minutes"] == 480
        assert row["labour_cost"] == Decimal("200.00")
        assert row["revenue"] is None
        assert set(row) == set(KPI_FIELDS)

    def test_absent_fields_keep_stored_value(self, kpis):
        kpis.merge(OWNER, DAY, 8, {"paid_minutes": 480, "labour_cost": Decimal("200.00")})
        kpis.merge(OWNER, DAY, 8, {"revenue": Decimal("900.00"), "cogs": Decimal("100.00")})

        row = kpis.get(OWNER, DAY, 8)
        assert row["paid_minutes"] == 480
        assert row["labour_cost"] == Decimal("200.00")
        assert row["revenue"] == Decimal("900.00")

    def test_explicit_none_overwrites(self, kpis):
        kpis.merge(OWNER, DAY, 8, {"revenue": Decimal("900.00")})
        kpis.merge(OWNER, DAY, 8, {"revenue": None})

        assert kpis.get(OWNER, DAY, 8)["revenue"] is None

    def test_unknown_field_raises(self, kpis):
        with pytest.raises(ValueError, match="bogus"):
            kpis.merge(OWNER, DAY, 8, {"bogus": 1})
        assert kpis.get(OWNER, DAY, 8) is None

    def test_job_numbers_for_day(self, kpis):
        kpis.merge(OWNER, DAY, 9, {"paid_minutes": 1})
        kpis.merge(OWNER, DAY, 2, {"paid_minutes": 1})
        kpis.merge(OWNER, date(2024, 3, 5), 4, {"paid_minutes": 1})

        assert kpis.job_numbers_for_day(OWNER, DAY) == [2, 9]
