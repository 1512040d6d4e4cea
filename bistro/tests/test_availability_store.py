"""
容量存储测试
覆盖不变量、原子占用、释放和并发下不超卖
"""

import random
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from bistro.core.exceptions import (
    InsufficientCapacityError,
    InvalidCapacityError,
    SlotInUseError,
    SlotNotFoundError,
    ValidationError,
)
from conftest import BUNS, SEMLA, TODAY

JUNE_1 = date(2024, 6, 1)


class TestUpsertMaximum:
    """设置最大份数"""

    def test_creates_slot_with_zero_committed(self, store):
        slot = store.upsert_maximum(BUNS, JUNE_1, 5)

        assert slot.max_orders == 5
        assert slot.current_orders == 0
        assert slot.remaining == 5
        assert slot.is_active is True

    def test_existing_slot_keeps_committed_count(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 5)
        store.try_reserve(BUNS, JUNE_1, 3)

        slot = store.upsert_maximum(BUNS, JUNE_1, 10)

        assert slot.max_orders == 10
        assert slot.current_orders == 3
        assert slot.remaining == 7

    def test_negative_maximum_rejected_and_nothing_written(self, store):
        with pytest.raises(InvalidCapacityError):
            store.upsert_maximum(BUNS, JUNE_1, -1)

        assert store.get(BUNS, JUNE_1) is None

    def test_maximum_below_committed_is_allowed(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 5)
        store.try_reserve(BUNS, JUNE_1, 4)

        slot = store.upsert_maximum(BUNS, JUNE_1, 2)

        assert slot.current_orders == 4
        assert slot.remaining == 0
        with pytest.raises(InsufficientCapacityError) as exc_info:
            store.try_reserve(BUNS, JUNE_1, 1)
        assert exc_info.value.remaining == 0


class TestReserveAndRelease:
    """占用与释放"""

    def test_scenario_reserve_exhaust_release(self, store):
        """max=2: 占2成功，再占1失败，释放2后再占1成功"""
        store.upsert_maximum(BUNS, JUNE_1, 2)

        assert store.try_reserve(BUNS, JUNE_1, 2).current_orders == 2

        with pytest.raises(InsufficientCapacityError) as exc_info:
            store.try_reserve(BUNS, JUNE_1, 1)
        assert exc_info.value.remaining == 0
        assert exc_info.value.details["remaining"] == 0

        assert store.release(BUNS, JUNE_1, 2).current_orders == 0
        assert store.try_reserve(BUNS, JUNE_1, 1).current_orders == 1

    def test_quantity_consumes_capacity(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 5)

        slot = store.try_reserve(BUNS, JUNE_1, 3)

        assert slot.current_orders == 3
        assert slot.remaining == 2

    def test_failed_reserve_reports_remaining_and_leaves_row(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 5)
        store.try_reserve(BUNS, JUNE_1, 3)
        before = store.get(BUNS, JUNE_1)

        with pytest.raises(InsufficientCapacityError) as exc_info:
            store.try_reserve(BUNS, JUNE_1, 3)

        assert exc_info.value.remaining == 2
        after = store.get(BUNS, JUNE_1)
        assert after.current_orders == before.current_orders
        assert after.max_orders == before.max_orders

    def test_unconfigured_date_has_no_capacity(self, store):
        with pytest.raises(InsufficientCapacityError) as exc_info:
            store.try_reserve(BUNS, JUNE_1, 1)

        assert exc_info.value.remaining == 0
        assert store.get(BUNS, JUNE_1) is None

    def test_inactive_slot_has_no_capacity(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 5)
        store.set_active(BUNS, JUNE_1, False)

        with pytest.raises(InsufficientCapacityError) as exc_info:
            store.try_reserve(BUNS, JUNE_1, 1)

        assert exc_info.value.remaining == 0
        assert store.get(BUNS, JUNE_1).current_orders == 0

    def test_release_is_inverse_of_reserve(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 8)
        store.try_reserve(BUNS, JUNE_1, 2)
        before = store.get(BUNS, JUNE_1).current_orders

        store.try_reserve(BUNS, JUNE_1, 4)
        store.release(BUNS, JUNE_1, 4)

        assert store.get(BUNS, JUNE_1).current_orders == before

    def test_release_floors_at_zero(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 5)
        store.try_reserve(BUNS, JUNE_1, 1)

        slot = store.release(BUNS, JUNE_1, 3)

        assert slot.current_orders == 0

    def test_release_for_missing_slot_is_noop(self, store):
        assert store.release(BUNS, JUNE_1, 1) is None

    def test_quantity_must_be_positive(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 5)

        with pytest.raises(ValidationError):
            store.try_reserve(BUNS, JUNE_1, 0)
        with pytest.raises(ValidationError):
            store.release(BUNS, JUNE_1, -2)


class TestConcurrency:
    """并发占用"""

    def test_no_overbooking_under_concurrent_reservations(self, store):
        capacity, attempts = 7, 20
        store.upsert_maximum(BUNS, JUNE_1, capacity)

        def attempt(_):
            try:
                store.try_reserve(BUNS, JUNE_1, 1)
                return True
            except InsufficientCapacityError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(attempts)))

        assert results.count(True) == capacity
        assert results.count(False) == attempts - capacity
        assert store.get(BUNS, JUNE_1).current_orders == capacity

    def test_other_rows_unaffected_by_concurrent_load(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 3)
        store.upsert_maximum(SEMLA, JUNE_1, 3)

        def attempt(item_id):
            try:
                store.try_reserve(item_id, JUNE_1, 1)
                return item_id
            except InsufficientCapacityError:
                return None

        with ThreadPoolExecutor(max_workers=6) as pool:
            results = list(pool.map(attempt, [BUNS, SEMLA] * 5))

        assert results.count(BUNS) == 3
        assert results.count(SEMLA) == 3
        assert store.get(BUNS, JUNE_1).current_orders == 3
        assert store.get(SEMLA, JUNE_1).current_orders == 3


    def test_row_locks_are_reclaimed(self, store, test_db):
        store.upsert_maximum(BUNS, JUNE_1, 50)

        def cycle(_):
            store.try_reserve(BUNS, JUNE_1, 1)
            store.release(BUNS, JUNE_1, 1)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(cycle, range(200)))

        assert test_db.held_row_locks() == 0
        assert store.get(BUNS, JUNE_1).current_orders == 0

    def test_multi_slot_lock_dedupes_and_is_reclaimed(self, store, test_db):
        with store.lock_slots([SEMLA, BUNS, BUNS], JUNE_1):
            assert test_db.held_row_locks() == 2
        assert test_db.held_row_locks() == 0


class TestInvariant:
    """0 <= current_orders <= max_orders"""

    def test_random_operations_keep_invariant(self, store):
        rng = random.Random(1234)
        store.upsert_maximum(BUNS, JUNE_1, 6)

        for _ in range(200):
            op = rng.choice(["reserve", "release"])
            qty = rng.randint(1, 4)
            if op == "reserve":
                try:
                    store.try_reserve(BUNS, JUNE_1, qty)
                except InsufficientCapacityError:
                    pass
            else:
                store.release(BUNS, JUNE_1, qty)

            slot = store.get(BUNS, JUNE_1)
            assert 0 <= slot.current_orders <= slot.max_orders


class TestListingAndDelete:
    """列表与删除"""

    def test_list_by_item_future_only_ascending(self, store):
        yesterday = TODAY - timedelta(days=1)
        for d in [TODAY + timedelta(days=9), yesterday, TODAY, TODAY + timedelta(days=2)]:
            store.upsert_maximum(BUNS, d, 4)

        dates = [s.slot_date for s in store.list_by_item(BUNS)]

        assert dates == [TODAY, TODAY + timedelta(days=2), TODAY + timedelta(days=9)]

    def test_list_by_item_can_skip_inactive(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 4)
        store.upsert_maximum(BUNS, JUNE_1 + timedelta(days=1), 4)
        store.set_active(BUNS, JUNE_1, False)

        assert len(store.list_by_item(BUNS)) == 2
        assert [s.slot_date for s in store.list_by_item(BUNS, include_inactive=False)] == [
            JUNE_1 + timedelta(days=1)
        ]

    def test_delete_refused_when_committed(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 4)
        store.try_reserve(BUNS, JUNE_1, 1)

        with pytest.raises(SlotInUseError):
            store.delete(BUNS, JUNE_1)

        assert store.get(BUNS, JUNE_1) is not None

    def test_forced_delete(self, store):
        store.upsert_maximum(BUNS, JUNE_1, 4)
        store.try_reserve(BUNS, JUNE_1, 1)

        deleted = store.delete(BUNS, JUNE_1, force=True)

        assert deleted.current_orders == 1
        assert store.get(BUNS, JUNE_1) is None

    def test_delete_missing_slot(self, store):
        with pytest.raises(SlotNotFoundError):
            store.delete(BUNS, JUNE_1)
