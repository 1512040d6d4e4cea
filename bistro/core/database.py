"""
数据库连接和管理模块
提供 DuckDB 连接、表结构初始化、事务和行级锁
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, Hashable, Iterable, List, Optional

import duckdb

from .exceptions import BaseApplicationError, ConcurrencyError, DatabaseError
from ..config.settings import settings

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

# 完整的表结构定义
SCHEMA_SQL = r"""
CREATE TABLE IF NOT EXISTS menu_items (
  menu_item_id INTEGER PRIMARY KEY,
  name TEXT NOT NULL,
  available BOOLEAN DEFAULT TRUE,
  has_limited_availability BOOLEAN DEFAULT FALSE,
  pre_orders_only BOOLEAN DEFAULT FALSE
);

CREATE TABLE IF NOT EXISTS availability_slots (
  menu_item_id INTEGER NOT NULL,
  slot_date DATE NOT NULL,
  max_orders INTEGER NOT NULL CHECK(max_orders >= 0),
  current_orders INTEGER NOT NULL DEFAULT 0 CHECK(current_orders >= 0),
  is_active BOOLEAN NOT NULL DEFAULT TRUE,
  created_at TIMESTAMP DEFAULT now(),
  updated_at TIMESTAMP DEFAULT now(),
  PRIMARY KEY (menu_item_id, slot_date)
);

CREATE SEQUENCE IF NOT EXISTS reservations_id_seq;
CREATE TABLE IF NOT EXISTS reservations (
  reservation_id INTEGER DEFAULT nextval('reservations_id_seq') PRIMARY KEY,
  slot_date DATE NOT NULL,
  order_ref TEXT,
  status TEXT CHECK(status IN ('held','released')) NOT NULL,
  created_at TIMESTAMP DEFAULT now(),
  released_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS reservation_lines (
  reservation_id INTEGER NOT NULL,
  menu_item_id INTEGER NOT NULL,
  qty INTEGER NOT NULL CHECK(qty > 0)
);

CREATE INDEX IF NOT EXISTS idx_reservation_lines_res ON reservation_lines(reservation_id);

CREATE SEQUENCE IF NOT EXISTS logs_id_seq;
CREATE TABLE IF NOT EXISTS logs (
  log_id INTEGER DEFAULT nextval('logs_id_seq') PRIMARY KEY,
  actor_id INTEGER,
  action TEXT,
  detail_json JSON,
  created_at TIMESTAMP DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_logs_action ON logs(action);
"""


def _db_path_from_url(db_url: str) -> str:
    """把 duckdb://path 形式的地址转换为文件路径"""
    path = db_url[len("duckdb://"):] if db_url.startswith("duckdb://") else db_url
    if path in (MEMORY_DB, "/" + MEMORY_DB, ""):
        return MEMORY_DB
    return path


class DatabaseManager:
    """数据库管理器，封装所有数据库操作

    根连接只负责建表和派生游标；每个工作单元使用自己的游标，
    这样不同线程可以同时读写而不共享事务状态。
    """

    def __init__(self, db_path: Optional[str] = None):
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.RLock()
        # 业务键 -> [锁, 引用计数]，计数归零即回收
        self._row_locks: Dict[Hashable, list] = {}
        self.db_path = db_path or _db_path_from_url(settings.database_url)

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """获取根连接（首次访问时建表）"""
        with self._lock:
            if self._connection is None:
                if self.db_path != MEMORY_DB:
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                self._init_schema()
            return self._connection

    def _init_schema(self):
        """初始化数据库表结构"""
        try:
            self._connection.execute(SCHEMA_SQL)
        except duckdb.Error as e:
            raise DatabaseError(f"Failed to initialize schema: {e}")
        logger.info("Database schema ready at %s", self.db_path)

    def init_database(self):
        """初始化数据库"""
        return self.connection

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """为当前工作单元创建独立游标"""
        with self._lock:
            return self.connection.cursor()

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """
        数据库事务上下文管理器

        业务异常原样抛出；DuckDB 写冲突转换为 ConcurrencyError，
        其他数据库错误转换为 DatabaseError。
        """
        cur = self.cursor()
        try:
            cur.execute("BEGIN TRANSACTION")
            try:
                yield cur
                cur.execute("COMMIT")
            except BaseException:
                try:
                    cur.execute("ROLLBACK")
                except duckdb.Error:
                    logger.debug("Rollback after failed transaction also failed", exc_info=True)
                raise
        except BaseApplicationError:
            raise
        except duckdb.Error as e:
            if "conflict" in str(e).lower() or "serialization" in str(e).lower():
                logger.warning("Write conflict: %s", e)
                raise ConcurrencyError()
            raise DatabaseError(f"Database operation failed: {e}")
        finally:
            cur.close()

    @contextmanager
    def row_lock(self, *key: Hashable) -> Generator[None, None, None]:
        """按业务键加进程内互斥锁，不同键之间互不阻塞"""
        with self.row_locks([key]):
            yield

    @contextmanager
    def row_locks(self, keys: Iterable[Hashable]) -> Generator[None, None, None]:
        """
        对多个业务键按排序后的顺序依次加锁

        没有线程再持有或等待的锁在退出时删除。
        """
        ordered = sorted(set(keys))
        entries: List[list] = []
        with self._lock:
            for key in ordered:
                entry = self._row_locks.get(key)
                if entry is None:
                    entry = self._row_locks[key] = [threading.Lock(), 0]
                entry[1] += 1
                entries.append(entry)

        acquired: List[list] = []
        try:
            for entry in entries:
                entry[0].acquire()
                acquired.append(entry)
            yield
        finally:
            for entry in reversed(acquired):
                entry[0].release()
            with self._lock:
                for key, entry in zip(ordered, entries):
                    entry[1] -= 1
                    if entry[1] == 0:
                        del self._row_locks[key]

    def held_row_locks(self) -> int:
        """当前仍登记的行锁数量"""
        with self._lock:
            return len(self._row_locks)

    def execute_query(self, query: str, params: list = None) -> list:
        """执行查询并返回结果"""
        cur = self.cursor()
        try:
            return cur.execute(query, params or []).fetchall()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")
        finally:
            cur.close()

    def execute_one(self, query: str, params: list = None) -> Optional[tuple]:
        """执行查询并返回单条结果"""
        cur = self.cursor()
        try:
            return cur.execute(query, params or []).fetchone()
        except duckdb.Error as e:
            raise DatabaseError(f"Query execution failed: {e}")
        finally:
            cur.close()

    def close(self):
        """关闭根连接"""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None


# 全局数据库管理器实例
db_manager = DatabaseManager()
