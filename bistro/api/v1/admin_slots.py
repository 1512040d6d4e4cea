"""
后台可售日期管理路由
需要管理员令牌
"""

import io
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from ...core.clock import BusinessClock
from ...core.error_handler import create_success_response
from ...core.security import require_admin
from ...schemas.availability import (
    GenerateSlotsRequest,
    SlotActiveRequest,
    SlotBatchRequest,
    SlotMaximumRequest,
    slot_to_dict,
)
from ...services import CapacityAdmin, ExportService
from ..deps import get_capacity_admin, get_clock, get_export_service

router = APIRouter()


@router.get("/menu-items/{menu_item_id}/slots")
def list_slots(menu_item_id: int,
               staff_id: int = Depends(require_admin),
               admin: CapacityAdmin = Depends(get_capacity_admin)):
    """今天及以后的可售日期"""
    return create_success_response([slot_to_dict(s) for s in admin.list_slots(menu_item_id)])


@router.put("/menu-items/{menu_item_id}/slots")
def set_slots(menu_item_id: int, req: SlotBatchRequest,
              staff_id: int = Depends(require_admin),
              admin: CapacityAdmin = Depends(get_capacity_admin)):
    """批量设置多个日期的最大份数"""
    results = admin.set_maximums(
        menu_item_id, [(entry.slot_date, entry.max_orders) for entry in req.slots], staff_id)
    return create_success_response([
        {**slot_to_dict(r["slot"]), "warning": r["warning"]} for r in results
    ])


@router.put("/menu-items/{menu_item_id}/slots/{slot_date}")
def set_slot_maximum(menu_item_id: int, slot_date: date, req: SlotMaximumRequest,
                     staff_id: int = Depends(require_admin),
                     admin: CapacityAdmin = Depends(get_capacity_admin)):
    result = admin.set_maximum(menu_item_id, slot_date, req.max_orders, staff_id)
    return create_success_response({**slot_to_dict(result["slot"]), "warning": result["warning"]})


@router.patch("/menu-items/{menu_item_id}/slots/{slot_date}")
def set_slot_active(menu_item_id: int, slot_date: date, req: SlotActiveRequest,
                    staff_id: int = Depends(require_admin),
                    admin: CapacityAdmin = Depends(get_capacity_admin)):
    slot = admin.set_active(menu_item_id, slot_date, req.is_active, staff_id)
    return create_success_response(slot_to_dict(slot))


@router.delete("/menu-items/{menu_item_id}/slots/{slot_date}")
def delete_slot(menu_item_id: int, slot_date: date,
                force: bool = Query(False, description="已有占用时确认删除"),
                staff_id: int = Depends(require_admin),
                admin: CapacityAdmin = Depends(get_capacity_admin)):
    slot = admin.delete_slot(menu_item_id, slot_date, force=force, actor_id=staff_id)
    return create_success_response(slot_to_dict(slot), "Deleted")


@router.post("/menu-items/{menu_item_id}/slots/generate")
def generate_slots(menu_item_id: int, req: GenerateSlotsRequest,
                   staff_id: int = Depends(require_admin),
                   admin: CapacityAdmin = Depends(get_capacity_admin)):
    """按星期几生成后续日期，已有日期保持不变"""
    created = admin.generate_slots(menu_item_id, req.weekday, req.count, req.max_orders, staff_id)
    return create_success_response({"created": [d.isoformat() for d in created]})


@router.get("/slots/export")
def export_slots(staff_id: int = Depends(require_admin),
                 exporter: ExportService = Depends(get_export_service),
                 clock: BusinessClock = Depends(get_clock)):
    """导出容量安排为Excel文件"""
    excel_data = exporter.export_slots_excel()
    filename = f"capacity_{clock.today().isoformat()}.xlsx"
    return StreamingResponse(
        io.BytesIO(excel_data),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
