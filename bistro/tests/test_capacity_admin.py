"""
后台容量管理测试
"""

import json
from datetime import date, timedelta

import pytest

from bistro.core.exceptions import (
    InvalidCapacityError,
    MenuItemNotFoundError,
    SlotInUseError,
    SlotNotFoundError,
    ValidationError,
)
from conftest import BUNS, TODAY

JUNE_1 = date(2024, 6, 1)
JUNE_2 = date(2024, 6, 2)


def log_actions(test_db):
    return [r[0] for r in test_db.execute_query("SELECT action FROM logs ORDER BY log_id")]


class TestSetMaximum:

    def test_set_and_log(self, capacity_admin, test_db):
        result = capacity_admin.set_maximum(BUNS, JUNE_1, 8, actor_id=42)

        assert result["slot"].max_orders == 8
        assert result["warning"] is None
        row = test_db.execute_one(
            "SELECT actor_id, detail_json FROM logs WHERE action = 'slot_set_maximum'")
        assert row[0] == 42
        assert json.loads(row[1])["max_orders"] == 8

    def test_warns_when_lowered_below_committed(self, capacity_admin, store):
        capacity_admin.set_maximum(BUNS, JUNE_1, 5)
        store.try_reserve(BUNS, JUNE_1, 4)

        result = capacity_admin.set_maximum(BUNS, JUNE_1, 2)

        assert result["slot"].current_orders == 4
        assert "4 portion(s)" in result["warning"]

    def test_negative_rejected(self, capacity_admin, store):
        with pytest.raises(InvalidCapacityError):
            capacity_admin.set_maximum(BUNS, JUNE_1, -5)

        assert store.get(BUNS, JUNE_1) is None

    def test_past_date_rejected(self, capacity_admin):
        with pytest.raises(ValidationError):
            capacity_admin.set_maximum(BUNS, TODAY - timedelta(days=1), 5)

    def test_unknown_item(self, capacity_admin):
        with pytest.raises(MenuItemNotFoundError):
            capacity_admin.set_maximum(99, JUNE_1, 5)

    def test_batch_checks_dates_before_writing(self, capacity_admin, store):
        with pytest.raises(ValidationError):
            capacity_admin.set_maximums(BUNS, [(JUNE_1, 5), (TODAY - timedelta(days=3), 5)])

        assert store.get(BUNS, JUNE_1) is None

    def test_batch_checks_maximums_before_writing(self, capacity_admin, store, test_db):
        with pytest.raises(InvalidCapacityError):
            capacity_admin.set_maximums(BUNS, [(JUNE_1, 4), (JUNE_2, -1)])

        assert store.get(BUNS, JUNE_1) is None
        assert store.get(BUNS, JUNE_2) is None
        assert log_actions(test_db) == []

    def test_batch(self, capacity_admin):
        results = capacity_admin.set_maximums(BUNS, [(JUNE_1, 5), (JUNE_2, 6)])

        assert [(r["slot"].slot_date, r["slot"].max_orders) for r in results] == [
            (JUNE_1, 5), (JUNE_2, 6)]


class TestActivateAndDelete:

    def test_deactivate_keeps_counts(self, capacity_admin, store, test_db):
        capacity_admin.set_maximum(BUNS, JUNE_1, 5)
        store.try_reserve(BUNS, JUNE_1, 2)

        slot = capacity_admin.set_active(BUNS, JUNE_1, False)

        assert slot.is_active is False
        assert slot.current_orders == 2
        assert log_actions(test_db)[-1] == "slot_deactivate"

    def test_set_active_missing(self, capacity_admin):
        with pytest.raises(SlotNotFoundError):
            capacity_admin.set_active(BUNS, JUNE_1, True)

    def test_delete_requires_force_when_committed(self, capacity_admin, store, test_db):
        capacity_admin.set_maximum(BUNS, JUNE_1, 5)
        store.try_reserve(BUNS, JUNE_1, 1)

        with pytest.raises(SlotInUseError):
            capacity_admin.delete_slot(BUNS, JUNE_1)
        assert "slot_delete" not in log_actions(test_db)

        deleted = capacity_admin.delete_slot(BUNS, JUNE_1, force=True, actor_id=42)

        assert deleted.current_orders == 1
        assert store.get(BUNS, JUNE_1) is None
        detail = json.loads(test_db.execute_one(
            "SELECT detail_json FROM logs WHERE action = 'slot_delete'")[0])
        assert detail["forced"] is True

    def test_delete_unused(self, capacity_admin, store):
        capacity_admin.set_maximum(BUNS, JUNE_1, 5)

        capacity_admin.delete_slot(BUNS, JUNE_1)

        assert capacity_admin.list_slots(BUNS) == []


def test_generate_slots_logs_created_dates(capacity_admin, test_db):
    created = capacity_admin.generate_slots(BUNS, 6, 2, 10, actor_id=42)

    assert created == [JUNE_1, date(2024, 6, 8)]
    detail = json.loads(test_db.execute_one(
        "SELECT detail_json FROM logs WHERE action = 'slot_generate'")[0])
    assert detail["created"] == ["2024-06-01", "2024-06-08"]
    assert [s.slot_date for s in capacity_admin.list_slots(BUNS)] == created
