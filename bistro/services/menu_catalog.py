"""
菜单容量标记读取
菜单增删改由菜单模块负责，这里只提供容量子系统需要的只读查询，
以及初始化数据用的 upsert_item。
"""

from typing import Dict, Iterable, List

from ..core.database import DatabaseManager, db_manager
from ..core.exceptions import MenuItemNotFoundError
from ..models.menu import MenuItem

_COLUMNS = "menu_item_id, name, available, has_limited_availability, pre_orders_only"


def _row_to_item(row) -> MenuItem:
    return MenuItem(
        menu_item_id=row[0],
        name=row[1],
        available=row[2],
        has_limited_availability=row[3],
        pre_orders_only=row[4],
    )


class MenuCatalog:
    """餐品容量标记查询"""

    def __init__(self, db: DatabaseManager = None):
        self.db = db or db_manager

    def get_items(self, menu_item_ids: Iterable[int]) -> Dict[int, MenuItem]:
        """
        批量获取餐品

        Raises:
            MenuItemNotFoundError: 任一ID不存在时（列出全部缺失的ID）
        """
        ids = sorted(set(menu_item_ids))
        if not ids:
            return {}
        placeholders = ",".join(["?"] * len(ids))
        rows = self.db.execute_query(
            f"SELECT {_COLUMNS} FROM menu_items WHERE menu_item_id IN ({placeholders})",
            ids,
        )
        items = {row[0]: _row_to_item(row) for row in rows}
        missing = [i for i in ids if i not in items]
        if missing:
            raise MenuItemNotFoundError(missing)
        return items

    def get_item(self, menu_item_id: int) -> MenuItem:
        return self.get_items([menu_item_id])[menu_item_id]

    def list_limited_items(self) -> List[MenuItem]:
        """上架中的限量餐品"""
        rows = self.db.execute_query(
            f"SELECT {_COLUMNS} FROM menu_items "
            "WHERE available AND has_limited_availability ORDER BY menu_item_id"
        )
        return [_row_to_item(row) for row in rows]

    def upsert_item(self, item: MenuItem) -> MenuItem:
        with self.db.transaction() as cur:
            updated = cur.execute(
                """
                UPDATE menu_items
                SET name = ?, available = ?, has_limited_availability = ?, pre_orders_only = ?
                WHERE menu_item_id = ?
                RETURNING menu_item_id
                """,
                [item.name, item.available, item.has_limited_availability,
                 item.pre_orders_only, item.menu_item_id],
            ).fetchone()
            if updated is None:
                cur.execute(
                    f"INSERT INTO menu_items ({_COLUMNS}) VALUES (?,?,?,?,?)",
                    [item.menu_item_id, item.name, item.available,
                     item.has_limited_availability, item.pre_orders_only],
                )
        return item
