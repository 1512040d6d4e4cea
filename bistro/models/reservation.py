"""
容量预留相关数据模型
"""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from .base import BaseEntity


class ReservationStatus(str, Enum):
    """预留状态枚举"""
    HELD = "held"           # 已占用
    RELEASED = "released"   # 已释放（订单取消）


class ReservationLine(BaseEntity):
    """预留行"""
    menu_item_id: int = Field(..., description="餐品ID")
    qty: int = Field(..., ge=1, description="占用份数")


class Reservation(BaseEntity):
    """一次下单的容量预留"""
    reservation_id: int = Field(..., description="预留ID")
    slot_date: date = Field(..., description="日期")
    order_ref: Optional[str] = Field(None, description="外部订单号")
    status: ReservationStatus = Field(..., description="状态")
    lines: List[ReservationLine] = Field(default_factory=list, description="限量餐品占用明细")
    created_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
