"""TaskStore SQLite 实现

状态更新使用条件更新（WHERE status = expected），由 transaction 模块负责提交。
此处仅提供数据库操作，不自动提交事务。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import TaskStatus
from ..models.task import RelatedDocRef, Task


def _dump_related_docs(related_docs: list[RelatedDocRef]) -> str:
    return json.dumps(
        [ref.model_dump(mode="json", by_alias=True) for ref in related_docs],
        ensure_ascii=False,
    )


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, project_id, doc_id, type, status, prompt,
                               result, related_docs, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.project_id,
                task.doc_id,
                task.type.value,
                task.status.value,
                task.prompt,
                task.result,
                _dump_related_docs(task.related_docs),
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def find_task(self, project_id: str, task_id: str) -> Task | None:
        """查询属于指定项目的任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ? AND project_id = ?",
            (task_id, project_id),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(
        self,
        project_id: str | None = None,
        doc_id: str | None = None,
        status: str | None = None,
    ) -> list[Task]:
        """查询任务列表，支持按项目/文档/状态筛选，按 created_at 倒序"""
        clauses: list[str] = []
        params: list[str] = []
        if project_id:
            clauses.append("project_id = ?")
            params.append(project_id)
        if doc_id:
            clauses.append("doc_id = ?")
            params.append(doc_id)
        if status:
            clauses.append("status = ?")
            params.append(status)

        sql = "SELECT * FROM tasks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC, task_id DESC"

        cursor = await self._conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_task_fields(
        self,
        task_id: str,
        updated_at: str,
        type: str | None = None,
        prompt: str | None = None,
        related_docs: list[RelatedDocRef] | None = None,
    ) -> int:
        """编辑 pending 任务的 type/prompt/related_docs

        Returns:
            受影响行数（0 表示任务不存在或已不在 pending）
        """
        assignments = ["updated_at = ?"]
        params: list[str] = [updated_at]
        if type is not None:
            assignments.append("type = ?")
            params.append(type)
        if prompt is not None:
            assignments.append("prompt = ?")
            params.append(prompt)
        if related_docs is not None:
            assignments.append("related_docs = ?")
            params.append(_dump_related_docs(related_docs))

        params.extend([task_id, TaskStatus.PENDING.value])
        cursor = await self._conn.execute(
            f"UPDATE tasks SET {', '.join(assignments)} WHERE task_id = ? AND status = ?",
            params,
        )
        return cursor.rowcount

    async def update_task_status(
        self,
        task_id: str,
        status: str,
        updated_at: str,
        result: str | None = None,
        expected_status: str | None = None,
    ) -> int:
        """更新任务状态（可选同时写入 result）

        Args:
            expected_status: 非 None 时仅在当前状态等于该值时更新

        Returns:
            受影响行数
        """
        assignments = ["status = ?", "updated_at = ?"]
        params: list[str] = [status, updated_at]
        if result is not None:
            assignments.append("result = ?")
            params.append(result)

        sql = f"UPDATE tasks SET {', '.join(assignments)} WHERE task_id = ?"
        params.append(task_id)
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(expected_status)

        cursor = await self._conn.execute(sql, params)
        return cursor.rowcount

    async def update_task_result(self, task_id: str, result: str, updated_at: str) -> int:
        """写入生成中的累计结果（仅当任务仍在 generating）"""
        cursor = await self._conn.execute(
            "UPDATE tasks SET result = ?, updated_at = ? WHERE task_id = ? AND status = ?",
            (result, updated_at, task_id, TaskStatus.GENERATING.value),
        )
        return cursor.rowcount

    async def delete_task(self, project_id: str, task_id: str) -> int:
        """删除任务记录"""
        cursor = await self._conn.execute(
            "DELETE FROM tasks WHERE task_id = ? AND project_id = ?",
            (task_id, project_id),
        )
        return cursor.rowcount

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        related_data = json.loads(row["related_docs"]) if row["related_docs"] else []
        return Task(
            task_id=row["task_id"],
            project_id=row["project_id"],
            doc_id=row["doc_id"],
            type=row["type"],
            status=row["status"],
            prompt=row["prompt"],
            result=row["result"],
            related_docs=[RelatedDocRef(**item) for item in related_data],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
