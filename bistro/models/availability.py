"""
可售容量相关数据模型
"""

from datetime import date
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, computed_field

from .base import BaseEntity, TimestampMixin


class AvailabilitySlot(BaseEntity, TimestampMixin):
    """某餐品在某个日历日期的容量记录"""
    menu_item_id: int = Field(..., description="餐品ID")
    slot_date: date = Field(..., description="日期（营业地日历）")
    max_orders: int = Field(..., ge=0, description="最大可售份数")
    current_orders: int = Field(0, ge=0, description="已占用份数")
    is_active: bool = Field(True, description="是否启用")

    @computed_field
    @property
    def remaining(self) -> int:
        """剩余份数；上限被调低到已占用以下时按0计"""
        return max(0, self.max_orders - self.current_orders)

    def can_fit(self, quantity: int) -> bool:
        return self.is_active and self.remaining >= quantity


class CartLine(BaseModel):
    """购物车行：餐品ID和份数"""
    menu_item_id: int = Field(..., description="餐品ID")
    quantity: int = Field(..., ge=1, description="份数")


def merge_lines(lines: Iterable[CartLine]) -> List[CartLine]:
    """合并同一餐品的多行，按餐品ID升序返回"""
    totals = {}
    for line in lines:
        totals[line.menu_item_id] = totals.get(line.menu_item_id, 0) + line.quantity
    return [CartLine(menu_item_id=item_id, quantity=qty)
            for item_id, qty in sorted(totals.items())]


class CartDates(BaseModel):
    """购物车可选日期"""
    unrestricted: bool = Field(..., description="购物车中没有限量餐品，任意日期均可")
    dates: List[date] = Field(default_factory=list, description="满足整单的日期，升序")


class CartCheck(BaseModel):
    """购物车在指定日期的检查结果"""
    ok: bool
    violating_item_names: List[str] = Field(default_factory=list)


class NextAvailability(BaseModel):
    """限量餐品最近可订日期"""
    menu_item_id: int
    next_available_date: Optional[date] = None
    available_slots: int = 0
