"""
容量相关的请求/响应模式
"""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.availability import AvailabilitySlot, CartLine


class CartRequest(BaseModel):
    """购物车请求"""
    lines: List[CartLine] = Field(default_factory=list, description="购物车行")


class CartDateRequest(CartRequest):
    """购物车 + 日期请求"""
    slot_date: date = Field(..., alias="date", description="日期 YYYY-MM-DD")

    model_config = {"populate_by_name": True}


class ReserveRequest(CartDateRequest):
    """下单预留请求"""
    order_ref: Optional[str] = Field(None, max_length=100, description="外部订单号")


class SlotMaximumRequest(BaseModel):
    """设置单日最大份数"""
    max_orders: int = Field(..., description="最大份数")


class SlotEntry(BaseModel):
    """批量设置中的一项"""
    slot_date: date = Field(..., alias="date", description="日期")
    max_orders: int = Field(..., description="最大份数")

    model_config = {"populate_by_name": True}


class SlotBatchRequest(BaseModel):
    """批量设置请求"""
    slots: List[SlotEntry] = Field(..., min_length=1, description="日期与份数")


class SlotActiveRequest(BaseModel):
    """启用/停用"""
    is_active: bool = Field(..., description="是否启用")


class GenerateSlotsRequest(BaseModel):
    """按星期批量生成"""
    weekday: int = Field(..., description="0=周日 … 6=周六")
    count: int = Field(..., description="生成个数")
    max_orders: int = Field(..., description="每天最大份数")


def slot_to_dict(slot: AvailabilitySlot) -> Dict[str, Any]:
    """后台列表使用的记录格式"""
    return {
        "menu_item_id": slot.menu_item_id,
        "date": slot.slot_date.isoformat(),
        "max_orders": slot.max_orders,
        "current_orders": slot.current_orders,
        "remaining": slot.remaining,
        "is_active": slot.is_active,
    }
