"""Store Protocol 接口定义

定义执行流水线依赖的文档库网关接口，
使用 Python Protocol 实现结构化子类型（duck typing）。
"""

from typing import Protocol

from ..models.document import Document
from ..models.enums import TaskType
from ..models.project import AIApiSettings
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口"""

    async def find_task(self, project_id: str, task_id: str) -> Task | None:
        """查询属于指定项目的任务"""
        ...

    async def update_task_status(
        self,
        task_id: str,
        status: str,
        updated_at: str,
        result: str | None = None,
        expected_status: str | None = None,
    ) -> int:
        """更新任务状态（可选写入 result）"""
        ...

    async def update_task_result(self, task_id: str, result: str, updated_at: str) -> int:
        """写入生成中的累计结果"""
        ...


class DocumentStore(Protocol):
    """Document 只读接口（Prompt 组装使用）"""

    async def get_document(self, doc_id: str) -> Document | None:
        """根据 doc_id 查询文档"""
        ...

    async def find_document_field(self, doc_id: str, field_type: TaskType) -> str | None:
        """按字段类型读取文档文本字段"""
        ...


class ProjectStore(Protocol):
    """Project 只读接口"""

    async def find_project_provider_config(self, project_id: str) -> AIApiSettings | None:
        """读取项目选中的 AI API 配置"""
        ...
