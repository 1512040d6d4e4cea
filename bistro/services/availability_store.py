"""
可售容量存储
每个 (餐品, 日期) 一行，负责维护 0 <= current_orders <= max_orders

所有写操作都在该行的进程内锁 + 独立事务中完成，
检查与自增由一条带条件的 UPDATE 完成，不存在“先读后写”的窗口。
"""

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from ..core.clock import BusinessClock, business_clock
from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import (
    InsufficientCapacityError,
    InvalidCapacityError,
    SlotInUseError,
    SlotNotFoundError,
    ValidationError,
)
from ..models.availability import AvailabilitySlot

logger = logging.getLogger(__name__)

_COLUMNS = "menu_item_id, slot_date, max_orders, current_orders, is_active, created_at, updated_at"


def _row_to_slot(row) -> AvailabilitySlot:
    return AvailabilitySlot(
        menu_item_id=row[0],
        slot_date=row[1],
        max_orders=row[2],
        current_orders=row[3],
        is_active=row[4],
        created_at=row[5],
        updated_at=row[6],
    )


def _check_quantity(quantity: int):
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1", {"quantity": quantity})


class AvailabilityStore:
    """可售容量存储"""

    def __init__(self, db: DatabaseManager = None, clock: BusinessClock = None):
        self.db = db or db_manager
        self.clock = clock or business_clock

    def _slot_lock(self, menu_item_id: int, slot_date: date):
        return self.db.row_lock("slot", menu_item_id, slot_date)

    def lock_slots(self, menu_item_ids: Iterable[int], slot_date: date):
        """同一天多个餐品的行锁，按餐品ID升序获取"""
        return self.db.row_locks(("slot", item_id, slot_date) for item_id in menu_item_ids)

    # ---- 读取 ----

    def get(self, menu_item_id: int, slot_date: date) -> Optional[AvailabilitySlot]:
        row = self.db.execute_one(
            f"SELECT {_COLUMNS} FROM availability_slots WHERE menu_item_id = ? AND slot_date = ?",
            [menu_item_id, slot_date],
        )
        return _row_to_slot(row) if row else None

    def list_by_item(self, menu_item_id: int, include_inactive: bool = True) -> List[AvailabilitySlot]:
        """今天及以后的记录，按日期升序"""
        return self.list_for_items([menu_item_id], active_only=not include_inactive).get(menu_item_id, [])

    def list_for_items(self, menu_item_ids: Iterable[int],
                       active_only: bool = True) -> Dict[int, List[AvailabilitySlot]]:
        """批量读取多个餐品今天及以后的记录"""
        ids = sorted(set(menu_item_ids))
        if not ids:
            return {}
        placeholders = ",".join(["?"] * len(ids))
        query = (
            f"SELECT {_COLUMNS} FROM availability_slots "
            f"WHERE menu_item_id IN ({placeholders}) AND slot_date >= ?"
        )
        if active_only:
            query += " AND is_active"
        query += " ORDER BY menu_item_id, slot_date"

        grouped: Dict[int, List[AvailabilitySlot]] = {item_id: [] for item_id in ids}
        for row in self.db.execute_query(query, ids + [self.clock.today()]):
            grouped[row[0]].append(_row_to_slot(row))
        return grouped

    # ---- 写入 ----

    def upsert_maximum(self, menu_item_id: int, slot_date: date, max_orders: int) -> AvailabilitySlot:
        """
        设置某日最大份数

        不存在则创建（current_orders=0）；存在则只替换 max_orders。
        新上限低于已占用份数不报错，由调用方决定是否提示。

        Raises:
            InvalidCapacityError: max_orders < 0
        """
        if max_orders < 0:
            raise InvalidCapacityError(max_orders)

        with self._slot_lock(menu_item_id, slot_date):
            with self.db.transaction() as cur:
                row = cur.execute(
                    f"""
                    UPDATE availability_slots
                    SET max_orders = ?, updated_at = now()
                    WHERE menu_item_id = ? AND slot_date = ?
                    RETURNING {_COLUMNS}
                    """,
                    [max_orders, menu_item_id, slot_date],
                ).fetchone()
                if row is None:
                    row = cur.execute(
                        f"""
                        INSERT INTO availability_slots (menu_item_id, slot_date, max_orders, current_orders)
                        VALUES (?, ?, ?, 0)
                        RETURNING {_COLUMNS}
                        """,
                        [menu_item_id, slot_date, max_orders],
                    ).fetchone()
        slot = _row_to_slot(row)
        if slot.max_orders < slot.current_orders:
            logger.warning(
                "Slot %s/%s maximum %d is below committed %d",
                menu_item_id, slot_date, slot.max_orders, slot.current_orders,
            )
        return slot

    def create_if_absent(self, menu_item_id: int, slot_date: date, max_orders: int) -> bool:
        """仅在记录不存在时创建，已有记录（含已占用份数）保持不变"""
        if max_orders < 0:
            raise InvalidCapacityError(max_orders)

        with self._slot_lock(menu_item_id, slot_date):
            with self.db.transaction() as cur:
                exists = cur.execute(
                    "SELECT 1 FROM availability_slots WHERE menu_item_id = ? AND slot_date = ?",
                    [menu_item_id, slot_date],
                ).fetchone()
                if exists:
                    return False
                cur.execute(
                    "INSERT INTO availability_slots (menu_item_id, slot_date, max_orders, current_orders) "
                    "VALUES (?, ?, ?, 0)",
                    [menu_item_id, slot_date, max_orders],
                )
        return True

    def try_reserve(self, menu_item_id: int, slot_date: date, quantity: int) -> AvailabilitySlot:
        """
        原子地占用份数

        Returns:
            AvailabilitySlot: 占用后的记录

        Raises:
            InsufficientCapacityError: 剩余不足、记录不存在或已停用时，携带真实剩余份数
        """
        _check_quantity(quantity)

        with self._slot_lock(menu_item_id, slot_date):
            with self.db.transaction() as cur:
                row = cur.execute(
                    f"""
                    UPDATE availability_slots
                    SET current_orders = current_orders + ?, updated_at = now()
                    WHERE menu_item_id = ? AND slot_date = ?
                      AND is_active
                      AND current_orders + ? <= max_orders
                    RETURNING {_COLUMNS}
                    """,
                    [quantity, menu_item_id, slot_date, quantity],
                ).fetchone()
                if row is None:
                    current = cur.execute(
                        "SELECT max_orders, current_orders, is_active FROM availability_slots "
                        "WHERE menu_item_id = ? AND slot_date = ?",
                        [menu_item_id, slot_date],
                    ).fetchone()
                    remaining = max(0, current[0] - current[1]) if current and current[2] else 0
                    raise InsufficientCapacityError(menu_item_id, slot_date, quantity, remaining)

        slot = _row_to_slot(row)
        logger.debug("Reserved %d of item %s on %s, %d left",
                     quantity, menu_item_id, slot_date, slot.remaining)
        return slot

    def release(self, menu_item_id: int, slot_date: date, quantity: int) -> Optional[AvailabilitySlot]:
        """释放份数，最低减到0；记录不存在时返回 None"""
        with self._slot_lock(menu_item_id, slot_date):
            with self.db.transaction() as cur:
                return self.release_in(cur, menu_item_id, slot_date, quantity)

    def release_in(self, cur, menu_item_id: int, slot_date: date,
                   quantity: int) -> Optional[AvailabilitySlot]:
        """在调用方的事务中释放份数，调用方须已持有该行的锁"""
        _check_quantity(quantity)
        row = cur.execute(
            f"""
            UPDATE availability_slots
            SET current_orders = greatest(current_orders - ?, 0), updated_at = now()
            WHERE menu_item_id = ? AND slot_date = ?
            RETURNING {_COLUMNS}
            """,
            [quantity, menu_item_id, slot_date],
        ).fetchone()
        if row is None:
            logger.warning("Release for missing slot %s/%s ignored", menu_item_id, slot_date)
            return None
        return _row_to_slot(row)

    def set_active(self, menu_item_id: int, slot_date: date, is_active: bool) -> Optional[AvailabilitySlot]:
        with self._slot_lock(menu_item_id, slot_date):
            with self.db.transaction() as cur:
                row = cur.execute(
                    f"""
                    UPDATE availability_slots
                    SET is_active = ?, updated_at = now()
                    WHERE menu_item_id = ? AND slot_date = ?
                    RETURNING {_COLUMNS}
                    """,
                    [is_active, menu_item_id, slot_date],
                ).fetchone()
        return _row_to_slot(row) if row else None

    def delete(self, menu_item_id: int, slot_date: date, force: bool = False) -> AvailabilitySlot:
        """
        删除记录，返回被删除的记录

        Raises:
            SlotNotFoundError: 记录不存在
            SlotInUseError: 已有占用份数且未强制删除
        """
        with self._slot_lock(menu_item_id, slot_date):
            with self.db.transaction() as cur:
                row = cur.execute(
                    f"SELECT {_COLUMNS} FROM availability_slots WHERE menu_item_id = ? AND slot_date = ?",
                    [menu_item_id, slot_date],
                ).fetchone()
                if row is None:
                    raise SlotNotFoundError(menu_item_id, slot_date)
                slot = _row_to_slot(row)
                if slot.current_orders > 0 and not force:
                    raise SlotInUseError(menu_item_id, slot_date, slot.current_orders)
                cur.execute(
                    "DELETE FROM availability_slots WHERE menu_item_id = ? AND slot_date = ?",
                    [menu_item_id, slot_date],
                )
        return slot
