"""DocumentStore SQLite 实现

文档字段按 TaskType 标签读取；写回字段与追加历史由 transaction 模块组合提交。
"""

from datetime import datetime

import aiosqlite

from ..models.document import (
    DOCUMENT_FIELD_COLUMNS,
    Document,
    DocumentHistoryEntry,
    get_document_field,
)
from ..models.enums import TaskType


class SqliteDocumentStore:
    """DocumentStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_document(self, doc: Document) -> None:
        """创建文档记录"""
        await self._conn.execute(
            """
            INSERT INTO documents (doc_id, project_id, title, type, content, summary,
                                   outline, improvement, notes, other, synopsis,
                                   parent_doc_id, priority, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                doc.doc_id,
                doc.project_id,
                doc.title,
                doc.type.value,
                doc.content,
                doc.summary,
                doc.outline,
                doc.improvement,
                doc.notes,
                doc.other,
                doc.synopsis,
                doc.parent_doc_id,
                doc.priority,
                doc.created_at.isoformat(),
                doc.updated_at.isoformat(),
            ),
        )

    async def get_document(self, doc_id: str) -> Document | None:
        """根据 doc_id 查询文档"""
        cursor = await self._conn.execute(
            "SELECT * FROM documents WHERE doc_id = ?",
            (doc_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_document(row)

    async def find_document_field(self, doc_id: str, field_type: TaskType) -> str | None:
        """读取文档的指定文本字段，文档不存在时返回 None"""
        doc = await self.get_document(doc_id)
        if doc is None:
            return None
        return get_document_field(doc, field_type)

    async def update_document_field(
        self,
        doc_id: str,
        field_type: TaskType,
        value: str,
        updated_at: str,
    ) -> int:
        """覆盖文档的指定文本字段"""
        column = DOCUMENT_FIELD_COLUMNS[TaskType(field_type)]
        cursor = await self._conn.execute(
            f"UPDATE documents SET {column} = ?, updated_at = ? WHERE doc_id = ?",
            (value, updated_at, doc_id),
        )
        return cursor.rowcount

    async def append_history(self, entry: DocumentHistoryEntry) -> None:
        """追加文档历史记录（append-only）"""
        await self._conn.execute(
            """
            INSERT INTO document_history (doc_id, field_type, content, task_id, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                entry.doc_id,
                entry.field_type.value,
                entry.content,
                entry.task_id,
                entry.created_at.isoformat(),
            ),
        )

    async def list_history(self, doc_id: str) -> list[DocumentHistoryEntry]:
        """查询文档历史记录，按写入顺序"""
        cursor = await self._conn.execute(
            "SELECT * FROM document_history WHERE doc_id = ? ORDER BY id ASC",
            (doc_id,),
        )
        rows = await cursor.fetchall()
        return [
            DocumentHistoryEntry(
                doc_id=row["doc_id"],
                field_type=row["field_type"],
                content=row["content"],
                task_id=row["task_id"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        """将数据库行转换为 Document 模型"""
        return Document(
            doc_id=row["doc_id"],
            project_id=row["project_id"],
            title=row["title"],
            type=row["type"],
            content=row["content"],
            summary=row["summary"],
            outline=row["outline"],
            improvement=row["improvement"],
            notes=row["notes"],
            other=row["other"],
            synopsis=row["synopsis"],
            parent_doc_id=row["parent_doc_id"],
            priority=row["priority"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
