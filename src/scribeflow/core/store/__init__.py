"""scribeflow Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from .document_store import SqliteDocumentStore
from .project_store import SqliteProjectStore
from .sqlite_init import init_db, verify_wal_mode
from .task_store import SqliteTaskStore
from .transaction import (
    InvalidTransitionError,
    TaskStatusConflictError,
    apply_task_result_to_document,
    create_document_record,
    create_project_record,
    create_task_record,
    delete_task_record,
    save_partial_result,
    transition_task_status,
    update_pending_task,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.task_store = SqliteTaskStore(conn)
        self.document_store = SqliteDocumentStore(conn)
        self.project_store = SqliteProjectStore(conn)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteDocumentStore",
    "SqliteProjectStore",
    "init_db",
    "verify_wal_mode",
    "TaskStatusConflictError",
    "InvalidTransitionError",
    "create_project_record",
    "create_document_record",
    "create_task_record",
    "update_pending_task",
    "delete_task_record",
    "transition_task_status",
    "save_partial_result",
    "apply_task_result_to_document",
]
