"""Task Domain Model

Task 只由 TaskExecutor（status/result）或用户在 pending 状态下的显式编辑
（type/prompt/related_docs）修改；核心层从不删除任务。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .enums import TaskStatus, TaskType


class RelatedDocRef(BaseModel):
    """相关文档引用 -- 指向另一个文档的某个文本字段

    对外 JSON 使用 {id, type} 形式，内部字段名更明确。
    """

    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(alias="id", description="被引用文档 ID")
    field_type: TaskType = Field(alias="type", description="引用的文本字段类型")


class Task(BaseModel):
    """Task 数据模型

    status 只能前进：pending -> generating -> completed/failed。
    失败时 result 保留已生成的部分内容。
    """

    task_id: str = Field(description="唯一标识，ULID 格式")
    project_id: str = Field(description="所属项目 ID")
    doc_id: str = Field(description="目标文档 ID")
    type: TaskType = Field(description="任务类型")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    prompt: str = Field(default="", description="用户指令")
    result: str = Field(default="", description="累计/最终生成结果")
    related_docs: list[RelatedDocRef] = Field(
        default_factory=list,
        description="相关文档引用（有序，顺序由调用方决定）",
    )
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")


def build_failure_result(partial: str, message: str) -> str:
    """失败任务的 result：保留已生成内容，错误信息追加在末尾"""
    error_line = f"Error: {message}"
    if partial:
        return f"{partial}\n\n{error_line}"
    return error_line
