"""
操作日志
写入 logs 表，调用方负责提供事务游标
"""

import json
from typing import Any, Dict, Optional


def log_operation(cur, actor_id: Optional[int], action: str, detail: Dict[str, Any]):
    """记录一条操作日志"""
    cur.execute(
        "INSERT INTO logs(actor_id, action, detail_json) VALUES (?,?,?)",
        [actor_id, action, json.dumps(detail, ensure_ascii=False, default=str)],
    )
