"""枚举定义 -- Task 状态机、任务类型、文档类型

包含 TaskStatus 状态机、TaskType（同时作为文档字段类型标签）、DocType 枚举，
以及 VALID_TRANSITIONS 合法流转映射和 TERMINAL_STATES 终态集合。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机"""

    # 初始状态
    PENDING = "pending"
    # 活跃状态
    GENERATING = "generating"

    # 终态
    COMPLETED = "completed"
    FAILED = "failed"


# 合法状态流转（只能前进）
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.GENERATING},
    TaskStatus.GENERATING: {
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
    },
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
}


class TaskType(StrEnum):
    """任务类型

    同一组取值也是文档文本字段的类型标签（relatedDocs 条目引用的字段）。
    """

    CONTENT = "content"
    SUMMARY = "summary"
    OUTLINE = "outline"
    IMPROVEMENT = "improvement"
    NOTES = "notes"
    OTHER = "other"
    SYNOPSIS = "synopsis"


# 执行前必须携带非空 prompt 的任务类型
PROMPT_REQUIRED_TYPES: set[TaskType] = {
    TaskType.CONTENT,
    TaskType.OUTLINE,
    TaskType.NOTES,
    TaskType.OTHER,
    TaskType.SYNOPSIS,
}


class DocType(StrEnum):
    """文档类型"""

    ARTICLE = "article"
    CHARACTER = "character"
    ORGANIZATION = "organization"
    BACKGROUND = "background"
    EVENT = "event"
    ITEM = "item"
    LOCATION = "location"
    ABILITY = "ability"
    SPELL = "spell"
    OTHER = "other"
    GROUP = "group"


TASK_TYPE_LABELS: dict[TaskType, str] = {
    TaskType.CONTENT: "内容",
    TaskType.SUMMARY: "摘要",
    TaskType.OUTLINE: "大纲",
    TaskType.IMPROVEMENT: "优化",
    TaskType.SYNOPSIS: "梗概",
    TaskType.NOTES: "笔记",
    TaskType.OTHER: "其他",
}

DOC_TYPE_LABELS: dict[DocType, str] = {
    DocType.ARTICLE: "文章",
    DocType.CHARACTER: "角色",
    DocType.ORGANIZATION: "组织",
    DocType.BACKGROUND: "背景",
    DocType.EVENT: "事件",
    DocType.ITEM: "物品",
    DocType.LOCATION: "地点",
    DocType.ABILITY: "能力",
    DocType.SPELL: "法术",
    DocType.OTHER: "其他",
    DocType.GROUP: "组",
}


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def requires_prompt(task_type: TaskType) -> bool:
    """该任务类型执行前是否必须携带 prompt"""
    return task_type in PROMPT_REQUIRED_TYPES
