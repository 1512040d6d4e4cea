"""
导出服务
把限量餐品今天及以后的容量安排导出为Excel，供后厨备料使用
"""

import io
from typing import Dict, List

import pandas as pd

from ..core.clock import BusinessClock, business_clock
from ..models.availability import AvailabilitySlot
from ..models.menu import MenuItem
from .availability_store import AvailabilityStore
from .menu_catalog import MenuCatalog


class ExportService:
    """容量安排导出"""

    def __init__(self, store: AvailabilityStore, catalog: MenuCatalog,
                 clock: BusinessClock = None):
        self.store = store
        self.catalog = catalog
        self.clock = clock or business_clock

    def export_slots_excel(self) -> bytes:
        """导出所有上架限量餐品的容量安排（含停用日期）"""
        items = {item.menu_item_id: item for item in self.catalog.list_limited_items()}
        slots = self.store.list_for_items(items.keys(), active_only=False)

        excel_buffer = io.BytesIO()
        with pd.ExcelWriter(excel_buffer, engine="openpyxl") as writer:
            self._create_summary_sheet(writer, items, slots)
            self._create_slots_sheet(writer, items, slots)

        excel_buffer.seek(0)
        return excel_buffer.getvalue()

    def _create_summary_sheet(self, writer, items: Dict[int, MenuItem],
                              slots: Dict[int, List[AvailabilitySlot]]):
        """容量概况：每个餐品一行"""
        if not items:
            pd.DataFrame({"提示": ["暂无限量餐品"]}).to_excel(writer, sheet_name="容量概况", index=False)
            return

        rows = []
        for item_id in sorted(items):
            active = [s for s in slots.get(item_id, []) if s.is_active]
            rows.append({
                "餐品ID": item_id,
                "餐品名称": items[item_id].name,
                "仅预订": "是" if items[item_id].pre_orders_only else "否",
                "可售日期数": len(active),
                "总份数": sum(s.max_orders for s in active),
                "已占用": sum(s.current_orders for s in active),
                "剩余": sum(s.remaining for s in active),
            })
        summary_df = pd.DataFrame(rows)
        summary_df["导出时间"] = self.clock.now().strftime("%Y-%m-%d %H:%M:%S")
        summary_df.to_excel(writer, sheet_name="容量概况", index=False)

    def _create_slots_sheet(self, writer, items: Dict[int, MenuItem],
                            slots: Dict[int, List[AvailabilitySlot]]):
        """可售日期明细，按日期再按餐品排序"""
        rows = [
            {
                "日期": slot.slot_date.isoformat(),
                "餐品ID": slot.menu_item_id,
                "餐品名称": items[slot.menu_item_id].name,
                "最大份数": slot.max_orders,
                "已占用": slot.current_orders,
                "剩余": slot.remaining,
                "状态": "启用" if slot.is_active else "停用",
            }
            for item_slots in slots.values()
            for slot in item_slots
        ]
        if not rows:
            pd.DataFrame({"提示": ["暂无可售日期"]}).to_excel(writer, sheet_name="可售日期", index=False)
            return

        rows.sort(key=lambda r: (r["日期"], r["餐品ID"]))
        pd.DataFrame(rows).to_excel(writer, sheet_name="可售日期", index=False)
