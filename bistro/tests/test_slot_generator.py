"""
批量生成测试
"""

from datetime import date

import pytest

from bistro.core.exceptions import InvalidCapacityError, ValidationError
from bistro.services.slot_generator import js_weekday, next_weekday_dates
from conftest import BUNS, TODAY

WEDNESDAY = 3
SATURDAY = 6


def test_js_weekday_convention():
    assert js_weekday(date(2024, 6, 2)) == 0   # 周日
    assert js_weekday(date(2024, 6, 1)) == 6   # 周六
    assert js_weekday(TODAY) == WEDNESDAY


def test_same_weekday_as_today_starts_next_week():
    assert next_weekday_dates(TODAY, WEDNESDAY, 2) == [date(2024, 6, 5), date(2024, 6, 12)]


def test_generate_next_saturdays(generator, store):
    created = generator.generate(BUNS, SATURDAY, 4, 12)

    assert created == [date(2024, 6, 1), date(2024, 6, 8), date(2024, 6, 15), date(2024, 6, 22)]
    assert all(d > TODAY for d in created)
    assert [s.slot_date for s in store.list_by_item(BUNS)] == created
    assert all(s.max_orders == 12 and s.current_orders == 0 for s in store.list_by_item(BUNS))


def test_generation_is_additive_only(generator, store):
    store.upsert_maximum(BUNS, date(2024, 6, 8), 5)
    store.try_reserve(BUNS, date(2024, 6, 8), 3)

    created = generator.generate(BUNS, SATURDAY, 4, 12)

    assert date(2024, 6, 8) not in created
    assert created == [date(2024, 6, 1), date(2024, 6, 15), date(2024, 6, 22), date(2024, 6, 29)]
    existing = store.get(BUNS, date(2024, 6, 8))
    assert existing.max_orders == 5
    assert existing.current_orders == 3
    assert len(store.list_by_item(BUNS)) == 5


def test_generation_stops_at_scan_horizon(generator, store):
    # count=2 时只扫描4个候选日期，前三个已存在
    for d in [date(2024, 6, 1), date(2024, 6, 8), date(2024, 6, 15)]:
        store.upsert_maximum(BUNS, d, 5)

    created = generator.generate(BUNS, SATURDAY, 2, 12)

    assert created == [date(2024, 6, 22)]


def test_repeat_generation_skips_existing_dates(generator):
    first = generator.generate(BUNS, SATURDAY, 2, 12)
    second = generator.generate(BUNS, SATURDAY, 2, 12)

    assert first == [date(2024, 6, 1), date(2024, 6, 8)]
    assert second == [date(2024, 6, 15), date(2024, 6, 22)]


@pytest.mark.parametrize("weekday", [-1, 7])
def test_invalid_weekday(generator, weekday):
    with pytest.raises(ValidationError):
        generator.generate(BUNS, weekday, 2, 12)


def test_invalid_count(generator):
    with pytest.raises(ValidationError):
        generator.generate(BUNS, SATURDAY, 0, 12)


def test_negative_capacity(generator, store):
    with pytest.raises(InvalidCapacityError):
        generator.generate(BUNS, SATURDAY, 2, -3)

    assert store.list_by_item(BUNS) == []
