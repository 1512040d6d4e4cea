"""
自定义异常类
提供更精确的错误处理和异常信息
"""

from datetime import date
from typing import Any, Dict, List, Optional


class BaseApplicationError(Exception):
    """应用基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class DatabaseError(BaseApplicationError):
    """数据库相关异常"""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class ConcurrencyError(BaseApplicationError):
    """并发控制错误"""

    def __init__(self, message: str = "System busy, please retry"):
        super().__init__(message, "CONCURRENCY_CONFLICT")


class AuthenticationError(BaseApplicationError):
    """认证相关异常"""

    def __init__(self, message: str):
        super().__init__(message, "AUTHENTICATION_REQUIRED")


class AuthorizationError(BaseApplicationError):
    """授权相关异常"""

    def __init__(self, message: str):
        super().__init__(message, "PERMISSION_DENIED")


class ValidationError(BaseApplicationError):
    """数据验证异常"""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class BusinessLogicError(BaseApplicationError):
    """业务逻辑异常"""
    pass


class InvalidCapacityError(BusinessLogicError):
    """容量上限为负数"""

    def __init__(self, max_orders: int):
        super().__init__(
            f"Maximum orders must be zero or more, got {max_orders}",
            "INVALID_CAPACITY",
            {"max_orders": max_orders},
        )


class InsufficientCapacityError(BusinessLogicError):
    """单个餐品在某日的剩余份数不足"""

    def __init__(self, menu_item_id: int, slot_date: date, requested: int, remaining: int):
        self.menu_item_id = menu_item_id
        self.slot_date = slot_date
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Only {remaining} portion(s) left for item {menu_item_id} on {slot_date.isoformat()}",
            "INSUFFICIENT_CAPACITY",
            {
                "menu_item_id": menu_item_id,
                "date": slot_date.isoformat(),
                "requested": requested,
                "remaining": remaining,
            },
        )


class CapacityExceededError(BusinessLogicError):
    """整单预留失败（已回滚），列出所有不足的餐品"""

    def __init__(self, slot_date: date, violations: List[Dict[str, Any]]):
        self.slot_date = slot_date
        self.violations = violations
        names = ", ".join(v.get("name") or str(v["menu_item_id"]) for v in violations)
        super().__init__(
            f"Not enough capacity on {slot_date.isoformat()} for: {names}",
            "CAPACITY_EXCEEDED",
            {"date": slot_date.isoformat(), "violating_items": violations},
        )


class MenuItemNotFoundError(BusinessLogicError):
    """餐品不存在"""

    def __init__(self, menu_item_ids: List[int]):
        super().__init__(
            f"Unknown menu item(s): {', '.join(str(i) for i in menu_item_ids)}",
            "MENU_ITEM_NOT_FOUND",
            {"menu_item_ids": menu_item_ids},
        )


class SlotNotFoundError(BusinessLogicError):
    """可售日期记录不存在"""

    def __init__(self, menu_item_id: int, slot_date: date):
        super().__init__(
            f"No availability slot for item {menu_item_id} on {slot_date.isoformat()}",
            "SLOT_NOT_FOUND",
            {"menu_item_id": menu_item_id, "date": slot_date.isoformat()},
        )


class SlotInUseError(BusinessLogicError):
    """可售日期已有订单占用，拒绝删除"""

    def __init__(self, menu_item_id: int, slot_date: date, current_orders: int):
        super().__init__(
            f"Slot for item {menu_item_id} on {slot_date.isoformat()} already has "
            f"{current_orders} committed portion(s)",
            "SLOT_IN_USE",
            {
                "menu_item_id": menu_item_id,
                "date": slot_date.isoformat(),
                "current_orders": current_orders,
            },
        )


class ReservationNotFoundError(BusinessLogicError):
    """预留记录不存在"""

    def __init__(self, reservation_id: int):
        super().__init__(
            f"Reservation {reservation_id} not found",
            "RESERVATION_NOT_FOUND",
            {"reservation_id": reservation_id},
        )
