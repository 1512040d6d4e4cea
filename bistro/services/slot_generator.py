"""
批量生成可售日期
按星期几向后生成若干个日期，只新增、不覆盖已有记录
"""

import logging
from datetime import date, timedelta
from typing import List

from ..config.settings import settings
from ..core.clock import BusinessClock, business_clock
from ..core.exceptions import InvalidCapacityError, ValidationError
from .availability_store import AvailabilityStore

logger = logging.getLogger(__name__)


def js_weekday(d: date) -> int:
    """0=周日 … 6=周六（与后台页面的取值一致）"""
    return d.isoweekday() % 7


def next_weekday_dates(today: date, weekday: int, count: int) -> List[date]:
    """today 之后（不含当天）的 count 个指定星期几"""
    offset = (weekday - js_weekday(today)) % 7 or 7
    first = today + timedelta(days=offset)
    return [first + timedelta(weeks=i) for i in range(count)]


class SlotGenerator:
    """可售日期生成器"""

    def __init__(self, store: AvailabilityStore, clock: BusinessClock = None,
                 scan_factor: int = None):
        self.store = store
        self.clock = clock or business_clock
        self.scan_factor = scan_factor or settings.generation_scan_factor

    def candidate_dates(self, weekday: int, count: int) -> List[date]:
        """扫描范围内的候选日期"""
        self._validate(weekday, count)
        return next_weekday_dates(self.clock.today(), weekday, count * self.scan_factor)

    def generate(self, menu_item_id: int, weekday: int, count: int,
                 max_orders_per_slot: int) -> List[date]:
        """
        生成接下来 count 个指定星期几的可售日期

        Args:
            menu_item_id: 餐品ID
            weekday: 0=周日 … 6=周六
            count: 需要新建的日期数
            max_orders_per_slot: 每天最大份数

        Returns:
            list: 实际新建的日期（升序）；已有记录的日期被跳过，
                  扫描 count * scan_factor 个候选后仍不足时返回已建的部分
        """
        if max_orders_per_slot < 0:
            raise InvalidCapacityError(max_orders_per_slot)

        created: List[date] = []
        for candidate in self.candidate_dates(weekday, count):
            if len(created) >= count:
                break
            if self.store.create_if_absent(menu_item_id, candidate, max_orders_per_slot):
                created.append(candidate)

        logger.info("Generated %d slot(s) for item %s on weekday %d", len(created), menu_item_id, weekday)
        return created

    @staticmethod
    def _validate(weekday: int, count: int):
        if not 0 <= weekday <= 6:
            raise ValidationError("Weekday must be between 0 (Sunday) and 6 (Saturday)",
                                  {"weekday": weekday})
        if count < 1:
            raise ValidationError("Count must be at least 1", {"count": count})
