"""单事务写入封装

每个函数是一次原子的读写单元：成功提交，失败回滚并重新抛出。
不跨 I/O 挂起点持有任何锁，并发一致性依赖 SQLite 条件更新。
"""

from datetime import UTC, datetime

import aiosqlite

from ..exceptions import ConflictError
from ..models.document import Document, DocumentHistoryEntry
from ..models.enums import TaskStatus, validate_transition
from ..models.project import Project
from ..models.task import RelatedDocRef, Task
from .document_store import SqliteDocumentStore
from .project_store import SqliteProjectStore
from .task_store import SqliteTaskStore


class TaskStatusConflictError(ConflictError):
    """条件更新失败：任务当前状态与预期不一致"""

    def __init__(self, task_id: str, expected_status: TaskStatus) -> None:
        super().__init__(f"task {task_id} is no longer {expected_status.value}")
        self.task_id = task_id
        self.expected_status = expected_status


class InvalidTransitionError(ConflictError):
    """状态机不允许的流转"""

    def __init__(self, from_status: TaskStatus, to_status: TaskStatus) -> None:
        super().__init__(
            f"cannot transition from {from_status.value} to {to_status.value}"
        )
        self.from_status = from_status
        self.to_status = to_status


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


async def create_project_record(
    conn: aiosqlite.Connection,
    project_store: SqliteProjectStore,
    project: Project,
) -> None:
    """写入项目记录"""
    try:
        await project_store.create_project(project)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def create_document_record(
    conn: aiosqlite.Connection,
    document_store: SqliteDocumentStore,
    doc: Document,
) -> None:
    """写入文档记录"""
    try:
        await document_store.create_document(doc)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def create_task_record(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    task: Task,
) -> None:
    """写入任务记录（初始状态必须为 pending）"""
    if task.status != TaskStatus.PENDING:
        raise InvalidTransitionError(task.status, TaskStatus.PENDING)
    try:
        await task_store.create_task(task)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise


async def update_pending_task(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    task_id: str,
    type: str | None = None,
    prompt: str | None = None,
    related_docs: list[RelatedDocRef] | None = None,
) -> bool:
    """编辑 pending 任务

    Returns:
        True 表示已更新，False 表示任务不存在或已离开 pending
    """
    try:
        rowcount = await task_store.update_task_fields(
            task_id,
            updated_at=_now_iso(),
            type=type,
            prompt=prompt,
            related_docs=related_docs,
        )
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return rowcount > 0


async def delete_task_record(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    project_id: str,
    task_id: str,
) -> bool:
    """删除任务记录"""
    try:
        rowcount = await task_store.delete_task(project_id, task_id)
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return rowcount > 0


async def transition_task_status(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    task_id: str,
    from_status: TaskStatus,
    to_status: TaskStatus,
    result: str | None = None,
) -> None:
    """提交一次状态流转（条件更新，保证只前进）

    Raises:
        InvalidTransitionError: 状态机不允许 from -> to
        TaskStatusConflictError: 任务当前状态已不是 from_status
    """
    if not validate_transition(from_status, to_status):
        raise InvalidTransitionError(from_status, to_status)

    try:
        rowcount = await task_store.update_task_status(
            task_id=task_id,
            status=to_status.value,
            updated_at=_now_iso(),
            result=result,
            expected_status=from_status.value,
        )
        if rowcount == 0:
            # 未命中即没有写入，不回滚共享连接上其他协程的写入
            raise TaskStatusConflictError(task_id, from_status)
        await conn.commit()
    except TaskStatusConflictError:
        raise
    except Exception:
        await conn.rollback()
        raise


async def save_partial_result(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    task_id: str,
    result: str,
) -> bool:
    """写入生成中的累计结果

    Returns:
        False 表示任务已不在 generating（终态结果不会被覆盖）
    """
    try:
        rowcount = await task_store.update_task_result(task_id, result, _now_iso())
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return rowcount > 0


async def apply_task_result_to_document(
    conn: aiosqlite.Connection,
    document_store: SqliteDocumentStore,
    task: Task,
) -> Document | None:
    """将已完成任务的结果写入目标文档对应字段，并追加历史记录

    字段由任务类型决定（content 任务写 content 字段，summary 任务写 summary 字段……）。

    Returns:
        更新后的文档，目标文档不存在时返回 None

    Raises:
        ConflictError: 任务尚未完成
    """
    if task.status != TaskStatus.COMPLETED:
        raise ConflictError(f"task is {task.status.value}, only completed results can be applied")

    now = datetime.now(UTC)
    try:
        rowcount = await document_store.update_document_field(
            task.doc_id, task.type, task.result, now.isoformat()
        )
        if rowcount == 0:
            return None
        await document_store.append_history(
            DocumentHistoryEntry(
                doc_id=task.doc_id,
                field_type=task.type,
                content=task.result,
                task_id=task.task_id,
                created_at=now,
            )
        )
        await conn.commit()
    except Exception:
        await conn.rollback()
        raise
    return await document_store.get_document(task.doc_id)
