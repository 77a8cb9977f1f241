"""scribeflow Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .document import (
    DOCUMENT_FIELD_ACCESSORS,
    DOCUMENT_FIELD_COLUMNS,
    Document,
    DocumentHistoryEntry,
    get_document_field,
)
from .enums import (
    DOC_TYPE_LABELS,
    PROMPT_REQUIRED_TYPES,
    TASK_TYPE_LABELS,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    DocType,
    TaskStatus,
    TaskType,
    requires_prompt,
    validate_transition,
)
from .project import AIApiSettings, Project
from .task import RelatedDocRef, Task, build_failure_result

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskType",
    "DocType",
    "TASK_TYPE_LABELS",
    "DOC_TYPE_LABELS",
    "PROMPT_REQUIRED_TYPES",
    "requires_prompt",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task
    "Task",
    "RelatedDocRef",
    "build_failure_result",
    # Document
    "Document",
    "DocumentHistoryEntry",
    "DOCUMENT_FIELD_ACCESSORS",
    "DOCUMENT_FIELD_COLUMNS",
    "get_document_field",
    # Project
    "Project",
    "AIApiSettings",
]
