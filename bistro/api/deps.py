"""
路由依赖
数据库和时钟挂在 app.state 上，服务按请求组装；行锁保存在 DatabaseManager 中，跨请求共享
"""

from fastapi import Depends, Request

from ..core.clock import BusinessClock
from ..core.database import DatabaseManager
from ..services import (
    AvailabilityChecker,
    AvailabilityStore,
    CapacityAdmin,
    ExportService,
    MenuCatalog,
    ReservationCommitter,
)


def get_db(request: Request) -> DatabaseManager:
    return request.app.state.db


def get_clock(request: Request) -> BusinessClock:
    return request.app.state.clock


def get_store(db: DatabaseManager = Depends(get_db),
              clock: BusinessClock = Depends(get_clock)) -> AvailabilityStore:
    return AvailabilityStore(db, clock)


def get_catalog(db: DatabaseManager = Depends(get_db)) -> MenuCatalog:
    return MenuCatalog(db)


def get_checker(store: AvailabilityStore = Depends(get_store),
                catalog: MenuCatalog = Depends(get_catalog),
                clock: BusinessClock = Depends(get_clock)) -> AvailabilityChecker:
    return AvailabilityChecker(store, catalog, clock)


def get_committer(store: AvailabilityStore = Depends(get_store),
                  catalog: MenuCatalog = Depends(get_catalog),
                  clock: BusinessClock = Depends(get_clock)) -> ReservationCommitter:
    return ReservationCommitter(store, catalog, clock)


def get_capacity_admin(store: AvailabilityStore = Depends(get_store),
                       catalog: MenuCatalog = Depends(get_catalog),
                       clock: BusinessClock = Depends(get_clock)) -> CapacityAdmin:
    return CapacityAdmin(store, catalog, clock=clock)


def get_export_service(store: AvailabilityStore = Depends(get_store),
                       catalog: MenuCatalog = Depends(get_catalog),
                       clock: BusinessClock = Depends(get_clock)) -> ExportService:
    return ExportService(store, catalog, clock)
