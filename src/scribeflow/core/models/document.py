"""Document Domain Model

文档拥有一组固定的文本字段（content/summary/outline/...），
任务通过字段类型标签引用其中之一。核心层只读文档字段，
任务结果写回文档是调用方的显式操作（见 store.transaction）。
"""

from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel, Field

from .enums import DocType, TaskType


class Document(BaseModel):
    """Document 数据模型"""

    doc_id: str = Field(description="唯一标识，ULID 格式")
    project_id: str = Field(description="所属项目 ID")
    title: str = Field(default="", description="文档标题")
    type: DocType = Field(default=DocType.ARTICLE, description="文档类型")

    # 文本字段
    content: str = Field(default="")
    summary: str = Field(default="")
    outline: str = Field(default="")
    improvement: str = Field(default="")
    notes: str = Field(default="")
    other: str = Field(default="")
    synopsis: str = Field(default="")

    parent_doc_id: str | None = Field(default=None, description="父文档 ID")
    priority: int = Field(default=0, description="同级排序权重")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


class DocumentHistoryEntry(BaseModel):
    """文档字段变更记录（append-only）"""

    doc_id: str
    field_type: TaskType
    content: str
    task_id: str | None = Field(default=None, description="来源任务 ID")
    created_at: datetime


# 字段类型 -> 读取函数，字段集合由 TaskType 封闭枚举决定
DOCUMENT_FIELD_ACCESSORS: dict[TaskType, Callable[[Document], str]] = {
    TaskType.CONTENT: lambda doc: doc.content,
    TaskType.SUMMARY: lambda doc: doc.summary,
    TaskType.OUTLINE: lambda doc: doc.outline,
    TaskType.IMPROVEMENT: lambda doc: doc.improvement,
    TaskType.NOTES: lambda doc: doc.notes,
    TaskType.OTHER: lambda doc: doc.other,
    TaskType.SYNOPSIS: lambda doc: doc.synopsis,
}

# 字段类型 -> documents 表列名
DOCUMENT_FIELD_COLUMNS: dict[TaskType, str] = {
    TaskType.CONTENT: "content",
    TaskType.SUMMARY: "summary",
    TaskType.OUTLINE: "outline",
    TaskType.IMPROVEMENT: "improvement",
    TaskType.NOTES: "notes",
    TaskType.OTHER: "other",
    TaskType.SYNOPSIS: "synopsis",
}


def get_document_field(doc: Document, field_type: TaskType) -> str:
    """按字段类型读取文档文本字段"""
    return DOCUMENT_FIELD_ACCESSORS[TaskType(field_type)](doc)
