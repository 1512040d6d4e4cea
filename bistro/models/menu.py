"""
餐品容量标记（菜单本身由菜单模块维护，这里只读取容量相关字段）
"""

from pydantic import Field

from .base import BaseEntity


class MenuItem(BaseEntity):
    """餐品"""
    menu_item_id: int = Field(..., description="餐品ID")
    name: str = Field(..., max_length=200, description="餐品名称")
    available: bool = Field(True, description="是否上架")
    has_limited_availability: bool = Field(False, description="是否按日期限量")
    pre_orders_only: bool = Field(False, description="仅接受预订（不可当天下单）")
