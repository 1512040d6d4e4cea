"""
后台容量管理
员工对单个可售日期的增删改，以及批量生成；所有变更写入操作日志
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..core.clock import BusinessClock, business_clock
from ..core.exceptions import InvalidCapacityError, SlotNotFoundError, ValidationError
from ..models.availability import AvailabilitySlot
from .audit_log import log_operation
from .availability_store import AvailabilityStore
from .menu_catalog import MenuCatalog
from .slot_generator import SlotGenerator

logger = logging.getLogger(__name__)


class CapacityAdmin:
    """容量管理服务"""

    def __init__(self, store: AvailabilityStore, catalog: MenuCatalog,
                 generator: SlotGenerator = None, clock: BusinessClock = None):
        self.store = store
        self.catalog = catalog
        self.db = store.db
        self.clock = clock or business_clock
        self.generator = generator or SlotGenerator(store, self.clock)

    def set_maximum(self, menu_item_id: int, slot_date: date, max_orders: int,
                    actor_id: Optional[int] = None) -> Dict[str, Any]:
        """
        创建或修改某日最大份数

        Returns:
            dict: slot 为最新记录；warning 在新上限低于已占用份数时给出提示
        """
        self.catalog.get_item(menu_item_id)
        self._require_not_past(slot_date)

        slot = self.store.upsert_maximum(menu_item_id, slot_date, max_orders)
        warning = None
        if slot.max_orders < slot.current_orders:
            warning = (f"{slot.current_orders} portion(s) are already committed, "
                       f"which is above the new maximum of {slot.max_orders}")

        self._log(actor_id, "slot_set_maximum", {
            "menu_item_id": menu_item_id, "date": slot_date, "max_orders": max_orders,
        })
        return {"slot": slot, "warning": warning}

    def set_maximums(self, menu_item_id: int, entries: Iterable[Tuple[date, int]],
                     actor_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """批量设置多个日期；写入前先校验全部日期和份数"""
        entries = list(entries)
        self.catalog.get_item(menu_item_id)
        for slot_date, max_orders in entries:
            self._require_not_past(slot_date)
            if max_orders < 0:
                raise InvalidCapacityError(max_orders)
        return [self.set_maximum(menu_item_id, slot_date, max_orders, actor_id)
                for slot_date, max_orders in entries]

    def generate_slots(self, menu_item_id: int, weekday: int, count: int,
                       max_orders_per_slot: int, actor_id: Optional[int] = None) -> List[date]:
        self.catalog.get_item(menu_item_id)
        created = self.generator.generate(menu_item_id, weekday, count, max_orders_per_slot)
        self._log(actor_id, "slot_generate", {
            "menu_item_id": menu_item_id,
            "weekday": weekday,
            "count": count,
            "max_orders": max_orders_per_slot,
            "created": created,
        })
        return created

    def set_active(self, menu_item_id: int, slot_date: date, is_active: bool,
                   actor_id: Optional[int] = None) -> AvailabilitySlot:
        slot = self.store.set_active(menu_item_id, slot_date, is_active)
        if slot is None:
            raise SlotNotFoundError(menu_item_id, slot_date)
        self._log(actor_id, "slot_activate" if is_active else "slot_deactivate", {
            "menu_item_id": menu_item_id, "date": slot_date,
        })
        return slot

    def delete_slot(self, menu_item_id: int, slot_date: date, force: bool = False,
                    actor_id: Optional[int] = None) -> AvailabilitySlot:
        """
        删除可售日期

        已有占用份数时拒绝删除，除非 force=True（员工已确认）。
        """
        slot = self.store.delete(menu_item_id, slot_date, force=force)
        if slot.current_orders > 0:
            logger.warning("Slot %s/%s deleted with %d committed portion(s)",
                           menu_item_id, slot_date, slot.current_orders)
        self._log(actor_id, "slot_delete", {
            "menu_item_id": menu_item_id,
            "date": slot_date,
            "current_orders": slot.current_orders,
            "forced": force,
        })
        return slot

    def list_slots(self, menu_item_id: int) -> List[AvailabilitySlot]:
        self.catalog.get_item(menu_item_id)
        return self.store.list_by_item(menu_item_id, include_inactive=True)

    def _require_not_past(self, slot_date: date):
        if slot_date < self.clock.today():
            raise ValidationError("Cannot configure capacity for a past date",
                                  {"date": slot_date.isoformat()})

    def _log(self, actor_id: Optional[int], action: str, detail: Dict[str, Any]):
        with self.db.transaction() as cur:
            log_operation(cur, actor_id, action, detail)
