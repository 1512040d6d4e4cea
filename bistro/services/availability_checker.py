"""
购物车可订日期查询（只读、建议性质）
结果在真正下单前可能过期，最终以 ReservationCommitter 为准
"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set

from ..core.clock import BusinessClock, business_clock
from ..models.availability import AvailabilitySlot, CartCheck, CartDates, CartLine, NextAvailability, merge_lines
from ..models.menu import MenuItem
from .availability_store import AvailabilityStore
from .menu_catalog import MenuCatalog


def earliest_orderable_date(item: MenuItem, today: date) -> date:
    """仅接受预订的餐品不能下当天的单"""
    return today + timedelta(days=1) if item.pre_orders_only else today


class AvailabilityChecker:
    """可订日期检查"""

    def __init__(self, store: AvailabilityStore, catalog: MenuCatalog,
                 clock: BusinessClock = None):
        self.store = store
        self.catalog = catalog
        self.clock = clock or business_clock

    def _limited_lines(self, lines: Iterable[CartLine]):
        merged = merge_lines(lines)
        items = self.catalog.get_items(line.menu_item_id for line in merged)
        limited = [line for line in merged if items[line.menu_item_id].has_limited_availability]
        return limited, items

    def available_dates_for_cart(self, lines: Iterable[CartLine]) -> CartDates:
        """
        整个购物车都能满足的日期

        没有限量餐品时返回 unrestricted；否则对每个限量餐品求
        “剩余 >= 份数”的日期集合，再取交集。
        """
        limited, items = self._limited_lines(lines)
        if not limited:
            return CartDates(unrestricted=True)

        today = self.clock.today()
        slots = self.store.list_for_items(line.menu_item_id for line in limited)

        common: Optional[Set[date]] = None
        for line in limited:
            earliest = earliest_orderable_date(items[line.menu_item_id], today)
            dates = {
                slot.slot_date for slot in slots.get(line.menu_item_id, [])
                if slot.slot_date >= earliest and slot.can_fit(line.quantity)
            }
            common = dates if common is None else common & dates
            if not common:
                break

        return CartDates(unrestricted=False, dates=sorted(common or ()))

    def check_cart_on_date(self, lines: Iterable[CartLine], slot_date: date) -> CartCheck:
        """检查指定日期，列出所有不满足的餐品名称（不在第一个冲突处停止）"""
        limited, items = self._limited_lines(lines)
        today = self.clock.today()

        violating: List[str] = []
        for line in limited:
            item = items[line.menu_item_id]
            if slot_date < earliest_orderable_date(item, today):
                violating.append(item.name)
                continue
            slot = self.store.get(line.menu_item_id, slot_date)
            if slot is None or not slot.can_fit(line.quantity):
                violating.append(item.name)

        return CartCheck(ok=not violating, violating_item_names=violating)

    def next_availability(self, menu_item_ids: Iterable[int] = None) -> List[NextAvailability]:
        """
        每个限量餐品最近一个还有余量的日期及剩余份数

        不传ID时返回所有上架的限量餐品。
        """
        if menu_item_ids is None:
            items = {item.menu_item_id: item for item in self.catalog.list_limited_items()}
        else:
            items = {
                item_id: item for item_id, item in self.catalog.get_items(menu_item_ids).items()
                if item.has_limited_availability
            }

        today = self.clock.today()
        slots: Dict[int, List[AvailabilitySlot]] = self.store.list_for_items(items.keys())
        result = []
        for item_id in sorted(items):
            earliest = earliest_orderable_date(items[item_id], today)
            first = next(
                (s for s in slots.get(item_id, []) if s.slot_date >= earliest and s.remaining > 0),
                None,
            )
            result.append(NextAvailability(
                menu_item_id=item_id,
                next_available_date=first.slot_date if first else None,
                available_slots=first.remaining if first else 0,
            ))
        return result
