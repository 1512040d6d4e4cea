"""
下单时的容量预留服务
提供整单“全部占用或全部不占用”的预留，以及订单取消时的释放

业务规则：
- 按餐品ID升序逐行占用，每行只在自己的行锁内操作
- 任一行不足时，立即释放本次已占用的所有行，再报告全部不足的餐品
- 预留记录与外部订单写入在同一事务中完成；失败时同样释放已占用的行
- 释放按预留ID幂等，重复调用不会重复扣减
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional

import duckdb

from ..core.clock import BusinessClock, business_clock
from ..core.exceptions import (
    CapacityExceededError,
    InsufficientCapacityError,
    ReservationNotFoundError,
    ValidationError,
)
from ..models.availability import CartLine, merge_lines
from ..models.menu import MenuItem
from ..models.reservation import Reservation, ReservationLine, ReservationStatus
from .audit_log import log_operation
from .availability_checker import earliest_orderable_date
from .availability_store import AvailabilityStore
from .menu_catalog import MenuCatalog

logger = logging.getLogger(__name__)

# 外部订单写入：在预留事务内以 (游标, 预留ID) 调用
OrderWriter = Callable[[duckdb.DuckDBPyConnection, int], None]


class ReservationCommitter:
    """容量预留提交器"""

    def __init__(self, store: AvailabilityStore, catalog: MenuCatalog,
                 clock: BusinessClock = None):
        self.store = store
        self.catalog = catalog
        self.db = store.db
        self.clock = clock or business_clock

    def reserve(self, lines: Iterable[CartLine], slot_date: date,
                order_ref: Optional[str] = None,
                order_writer: Optional[OrderWriter] = None,
                actor_id: Optional[int] = None) -> Reservation:
        """
        为整单占用指定日期的容量

        Args:
            lines: 购物车行（同一餐品的多行会被合并）
            slot_date: 取餐/配送日期
            order_ref: 外部订单号
            order_writer: 可选，与预留记录在同一事务中写入订单
            actor_id: 操作人

        Returns:
            Reservation: 预留记录（不含非限量餐品）

        Raises:
            ValidationError: 日期早于今天
            MenuItemNotFoundError: 购物车中有未知餐品
            CapacityExceededError: 任一限量餐品不足（已全部回滚）
        """
        today = self.clock.today()
        if slot_date < today:
            raise ValidationError("Cannot reserve capacity for a past date",
                                  {"date": slot_date.isoformat()})

        merged = merge_lines(lines)
        items = self.catalog.get_items(line.menu_item_id for line in merged)
        limited = [line for line in merged if items[line.menu_item_id].has_limited_availability]

        granted: List[CartLine] = []
        try:
            for line in limited:
                if slot_date < earliest_orderable_date(items[line.menu_item_id], today):
                    raise InsufficientCapacityError(line.menu_item_id, slot_date, line.quantity, 0)
                self.store.try_reserve(line.menu_item_id, slot_date, line.quantity)
                granted.append(line)
        except InsufficientCapacityError as short:
            self._roll_back(granted, slot_date)
            violations = self._collect_violations(limited, items, slot_date, today, short)
            logger.info("Reservation on %s rejected, short items: %s",
                        slot_date, [v["menu_item_id"] for v in violations])
            raise CapacityExceededError(slot_date, violations)
        except Exception:
            logger.warning("Reserving on %s failed, releasing %d line(s)", slot_date, len(granted))
            self._roll_back(granted, slot_date)
            raise

        try:
            reservation_id = self._record(granted, slot_date, order_ref, order_writer, actor_id)
        except Exception:
            logger.warning("Recording reservation on %s failed, releasing %d line(s)",
                           slot_date, len(granted))
            self._roll_back(granted, slot_date)
            raise

        logger.info("Reservation %d held for %s (%d limited line(s))",
                    reservation_id, slot_date, len(granted))
        return self.get(reservation_id)

    def release(self, reservation_id: int, actor_id: Optional[int] = None) -> Reservation:
        """
        订单取消时释放预留（幂等）

        持有全部相关行锁，在同一事务中归还份数并把预留标记为已释放；
        任一行失败时整体回滚，预留保持占用状态，可以重试。
        """
        with self.db.row_lock("reservation", reservation_id):
            reservation = self.get(reservation_id)
            if reservation.status == ReservationStatus.RELEASED:
                logger.info("Reservation %d already released", reservation_id)
                return reservation

            item_ids = [line.menu_item_id for line in reservation.lines]
            with self.store.lock_slots(item_ids, reservation.slot_date):
                with self.db.transaction() as cur:
                    for line in reservation.lines:
                        self.store.release_in(cur, line.menu_item_id, reservation.slot_date, line.qty)
                    cur.execute(
                        "UPDATE reservations SET status='released', released_at=now() WHERE reservation_id=?",
                        [reservation_id],
                    )
                    log_operation(cur, actor_id, "reservation_release", {
                        "reservation_id": reservation_id,
                        "date": reservation.slot_date,
                        "order_ref": reservation.order_ref,
                    })

        return self.get(reservation_id)

    def release_lines(self, lines: Iterable[CartLine], slot_date: date) -> List[CartLine]:
        """按购物车行直接归还份数（最低到0），返回实际处理的限量餐品行"""
        merged = merge_lines(lines)
        items = self.catalog.get_items(line.menu_item_id for line in merged)
        limited = [line for line in merged if items[line.menu_item_id].has_limited_availability]
        for line in limited:
            self.store.release(line.menu_item_id, slot_date, line.quantity)
        return limited

    def get(self, reservation_id: int) -> Reservation:
        row = self.db.execute_one(
            "SELECT reservation_id, slot_date, order_ref, status, created_at, released_at "
            "FROM reservations WHERE reservation_id = ?",
            [reservation_id],
        )
        if not row:
            raise ReservationNotFoundError(reservation_id)

        line_rows = self.db.execute_query(
            "SELECT menu_item_id, qty FROM reservation_lines WHERE reservation_id = ? ORDER BY menu_item_id",
            [reservation_id],
        )
        return Reservation(
            reservation_id=row[0],
            slot_date=row[1],
            order_ref=row[2],
            status=row[3],
            created_at=row[4],
            released_at=row[5],
            lines=[ReservationLine(menu_item_id=r[0], qty=r[1]) for r in line_rows],
        )

    def _roll_back(self, granted: List[CartLine], slot_date: date):
        """归还本次已占用的份数"""
        for line in reversed(granted):
            self.store.release(line.menu_item_id, slot_date, line.quantity)

    def _collect_violations(self, limited: List[CartLine], items: Dict[int, MenuItem],
                            slot_date: date, today: date,
                            short: InsufficientCapacityError) -> List[Dict[str, Any]]:
        """回滚后重新读取，列出所有不足的限量餐品（包括首个失败的）"""
        violations = []
        for line in limited:
            item = items[line.menu_item_id]
            if line.menu_item_id == short.menu_item_id:
                remaining = short.remaining
            elif slot_date < earliest_orderable_date(item, today):
                remaining = 0
            else:
                slot = self.store.get(line.menu_item_id, slot_date)
                if slot is not None and slot.can_fit(line.quantity):
                    continue
                remaining = slot.remaining if slot is not None and slot.is_active else 0
            violations.append({
                "menu_item_id": line.menu_item_id,
                "name": item.name,
                "requested": line.quantity,
                "remaining": remaining,
            })
        return violations

    def _record(self, granted: List[CartLine], slot_date: date, order_ref: Optional[str],
                order_writer: Optional[OrderWriter], actor_id: Optional[int]) -> int:
        with self.db.transaction() as cur:
            reservation_id = cur.execute(
                "INSERT INTO reservations(slot_date, order_ref, status) VALUES (?,?,?) RETURNING reservation_id",
                [slot_date, order_ref, ReservationStatus.HELD.value],
            ).fetchone()[0]
            for line in granted:
                cur.execute(
                    "INSERT INTO reservation_lines(reservation_id, menu_item_id, qty) VALUES (?,?,?)",
                    [reservation_id, line.menu_item_id, line.quantity],
                )
            log_operation(cur, actor_id, "reservation_commit", {
                "reservation_id": reservation_id,
                "date": slot_date,
                "order_ref": order_ref,
                "lines": [line.model_dump() for line in granted],
            })
            if order_writer is not None:
                order_writer(cur, reservation_id)
        return reservation_id
