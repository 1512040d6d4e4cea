"""
测试配置文件
提供测试所需的fixtures和配置
"""

import os

# 在导入应用之前切换到内存数据库
os.environ.setdefault("DATABASE_URL", "duckdb:///:memory:")

from datetime import date

import pytest
from fastapi.testclient import TestClient

from bistro.app import create_app
from bistro.core.clock import FixedClock
from bistro.core.database import DatabaseManager
from bistro.core.security import security_manager
from bistro.models.menu import MenuItem
from bistro.services import (
    AvailabilityChecker,
    AvailabilityStore,
    CapacityAdmin,
    MenuCatalog,
    ReservationCommitter,
    SlotGenerator,
)

# 2024-05-29 是周三
TODAY = date(2024, 5, 29)

BUNS = 1        # 限量
SEMLA = 2       # 限量
COFFEE = 3      # 不限量
CAKE = 4        # 限量，仅接受预订


@pytest.fixture
def clock():
    return FixedClock(TODAY)


@pytest.fixture
def test_db():
    """测试数据库"""
    db = DatabaseManager(":memory:")
    db.init_database()
    yield db
    db.close()


@pytest.fixture
def catalog(test_db):
    catalog = MenuCatalog(test_db)
    catalog.upsert_item(MenuItem(menu_item_id=BUNS, name="Cardamom buns", has_limited_availability=True))
    catalog.upsert_item(MenuItem(menu_item_id=SEMLA, name="Semla", has_limited_availability=True))
    catalog.upsert_item(MenuItem(menu_item_id=COFFEE, name="Filter coffee"))
    catalog.upsert_item(MenuItem(menu_item_id=CAKE, name="Princess cake",
                                 has_limited_availability=True, pre_orders_only=True))
    return catalog


@pytest.fixture
def store(test_db, clock):
    return AvailabilityStore(test_db, clock)


@pytest.fixture
def generator(store, clock):
    return SlotGenerator(store, clock, scan_factor=2)


@pytest.fixture
def checker(store, catalog, clock):
    return AvailabilityChecker(store, catalog, clock)


@pytest.fixture
def committer(store, catalog, clock):
    return ReservationCommitter(store, catalog, clock)


@pytest.fixture
def capacity_admin(store, catalog, generator, clock):
    return CapacityAdmin(store, catalog, generator, clock)


@pytest.fixture
def app_instance(test_db, clock, catalog):
    """测试应用"""
    return create_app(db=test_db, clock=clock)


@pytest.fixture
def client(app_instance):
    """测试客户端"""
    return TestClient(app_instance)


@pytest.fixture
def admin_headers():
    """管理员认证请求头"""
    token = security_manager.create_jwt_token(42, is_admin=True)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers():
    """普通员工认证请求头"""
    token = security_manager.create_jwt_token(7, is_admin=False)
    return {"Authorization": f"Bearer {token}"}
