"""
下单预留路由
供订单模块在创建订单前占用容量、在取消订单后归还容量
"""

from fastapi import APIRouter, Depends

from ...core.error_handler import create_success_response
from ...schemas.availability import CartDateRequest, ReserveRequest
from ...services import ReservationCommitter
from ..deps import get_committer

router = APIRouter()


@router.post("")
def reserve(req: ReserveRequest, committer: ReservationCommitter = Depends(get_committer)):
    """占用整单容量；任一限量餐品不足时返回 409 CAPACITY_EXCEEDED"""
    reservation = committer.reserve(req.lines, req.slot_date, order_ref=req.order_ref)
    return create_success_response(reservation.model_dump(mode="json"), "Reserved")


@router.post("/release")
def release_lines(req: CartDateRequest, committer: ReservationCommitter = Depends(get_committer)):
    """按购物车行归还容量"""
    released = committer.release_lines(req.lines, req.slot_date)
    return create_success_response({
        "date": req.slot_date.isoformat(),
        "lines": [line.model_dump() for line in released],
    }, "Released")


@router.get("/{reservation_id}")
def get_reservation(reservation_id: int, committer: ReservationCommitter = Depends(get_committer)):
    return create_success_response(committer.get(reservation_id).model_dump(mode="json"))


@router.post("/{reservation_id}/release")
def release_reservation(reservation_id: int,
                        committer: ReservationCommitter = Depends(get_committer)):
    """订单取消后释放预留，重复调用无副作用"""
    reservation = committer.release(reservation_id)
    return create_success_response(reservation.model_dump(mode="json"), "Released")
