"""
店面可订日期路由
结果仅供参考，下单时以预留结果为准
"""

from fastapi import APIRouter, Depends

from ...core.error_handler import create_success_response
from ...schemas.availability import CartDateRequest, CartRequest
from ...services import AvailabilityChecker
from ..deps import get_checker

router = APIRouter()


@router.post("/cart/dates")
def cart_available_dates(req: CartRequest, checker: AvailabilityChecker = Depends(get_checker)):
    """整单可订日期；没有限量餐品时 unrestricted 为 true"""
    result = checker.available_dates_for_cart(req.lines)
    return create_success_response({
        "unrestricted": result.unrestricted,
        "dates": [d.isoformat() for d in result.dates],
    })


@router.post("/cart/check")
def check_cart_on_date(req: CartDateRequest, checker: AvailabilityChecker = Depends(get_checker)):
    """检查购物车在指定日期是否可订，列出全部冲突餐品"""
    result = checker.check_cart_on_date(req.lines, req.slot_date)
    return create_success_response(result.model_dump())


@router.get("/menu")
def menu_availability(checker: AvailabilityChecker = Depends(get_checker)):
    """所有上架限量餐品的最近可订日期和剩余份数"""
    items = checker.next_availability()
    return create_success_response([item.model_dump(mode="json") for item in items])
