"""PromptAssembler -- 由任务及其相关文档组装 chat 对话轮次

组装结果:
    1. 固定的开场 user/assistant 对（"以下是相关文档"）
    2. 每个相关文档引用一对 user/assistant（按存储顺序，不重新排序）
    3. 按任务类型模板生成的最终 user 指令

纯读取 + 转换，不写入 store。
"""

from collections.abc import Callable

import structlog
from pydantic import BaseModel, Field
from scribeflow.core.exceptions import NotFoundError, PreconditionError
from scribeflow.core.models import (
    DOC_TYPE_LABELS,
    TASK_TYPE_LABELS,
    Document,
    Task,
    TaskType,
    get_document_field,
    requires_prompt,
)
from scribeflow.core.store.protocols import DocumentStore
from scribeflow.provider import ChatMessage

log = structlog.get_logger()

# ============================================================
# System prompts
# ============================================================

FICTION_WRITER_SYSTEM_PROMPT = (
    "你是一位专业的小说作家，擅长根据设定资料进行创作。"
    "请严格遵循已有的人物、地点与世界观设定，保持文风与叙事视角一致，"
    "情节自然连贯，语言生动流畅。请直接输出正文内容，不要添加任何解释。"
)

ANALYST_SYSTEM_PROMPT = (
    "你是一位专业的文学编辑与写作分析师，擅长阅读、归纳与评估文学作品。"
    "请基于提供的文档内容进行分析，只陈述文档中的事实，"
    "使用 markdown 格式输出结果。"
)

# ============================================================
# 对话模板
# ============================================================

RELATED_DOCS_INTRO = "以下是一些相关的文档，请参考这些内容完成后续任务。"
RELATED_DOCS_INTRO_ACK = "好的，我会仔细阅读这些文档，并在完成任务时参考它们。"
RELATED_DOC_ACK = "已阅读。"

CONTENT_WITH_EXISTING_TEMPLATE = "这是当前文档的已有内容：\n\n{content}\n\n{prompt}"

OUTLINE_TEMPLATE = "请为文档《{title}》生成一个大纲：\n\n{content}\n\n{prompt}"

IMPROVEMENT_TEMPLATE = "请根据以下本章内容，提出分析或者优化建议：\n\n{content}\n\n{instruction}"

DEFAULT_IMPROVEMENT_RUBRIC = (
    "请从情节、人物塑造、节奏、文笔、对白、世界观与设定一致性等维度，"
    "分别给出满分 100 分的评分及理由；"
    "再与同类型的知名作品进行比较，评估本章在同类作品中的水平与定位；"
    "最后给出具体可执行的优化建议。请返回 markdown 格式。"
)

NOTES_TEMPLATE = "这是当前文档的内容：\n\n{content}\n\n{prompt}"

OTHER_TEMPLATE = "这是当前文档的内容：\n\n{content}\n\n{prompt}"

SYNOPSIS_TEMPLATE = "这是当前文档的内容：\n\n{content}\n\n请为以上内容生成一个梗概，使用 markdown 格式。\n\n{prompt}"

SUMMARY_TEMPLATE = """请为以下文档生成一个详细的摘要，该摘要将用于生成后续文档的提示：

标题：{title}
类型：{doc_type}
内容：{content}

请提供一个详细的《{title}》摘要，包括每个章节的主要情节，以及出场人物的关键信息。\
摘要的返回格式为 markdown 格式。不能有任何的解释或评论，只能有摘要。\
不能有任何的猜想，只能有事实。"""


class AssembledPrompt(BaseModel):
    """组装完成的 prompt"""

    system: str = Field(description="system 消息文本")
    turns: list[ChatMessage] = Field(description="有序的对话轮次")

    @property
    def final_instruction(self) -> str:
        return self.turns[-1].content


def system_prompt(task_type: TaskType) -> str:
    """按任务类型选择 system prompt：content 使用小说创作人设，其余使用分析人设"""
    if TaskType(task_type) == TaskType.CONTENT:
        return FICTION_WRITER_SYSTEM_PROMPT
    return ANALYST_SYSTEM_PROMPT


def ensure_prompt_present(task: Task) -> None:
    """必填 prompt 的任务类型缺少 prompt 时抛出 PreconditionError"""
    if requires_prompt(task.type) and not task.prompt.strip():
        raise PreconditionError(f"{task.type.value} must have a prompt")


# ============================================================
# 最终指令模板（每个任务类型一个构建函数）
# ============================================================


def _content_instruction(task: Task, target: Document) -> str:
    if target.content:
        return CONTENT_WITH_EXISTING_TEMPLATE.format(content=target.content, prompt=task.prompt)
    return task.prompt


def _outline_instruction(task: Task, target: Document) -> str:
    return OUTLINE_TEMPLATE.format(
        title=target.title, content=target.content, prompt=task.prompt
    ).rstrip()


def _improvement_instruction(task: Task, target: Document) -> str:
    instruction = task.prompt.strip() or DEFAULT_IMPROVEMENT_RUBRIC
    return IMPROVEMENT_TEMPLATE.format(content=target.content, instruction=instruction)


def _notes_instruction(task: Task, target: Document) -> str:
    return NOTES_TEMPLATE.format(content=target.content, prompt=task.prompt)


def _other_instruction(task: Task, target: Document) -> str:
    return OTHER_TEMPLATE.format(content=target.content, prompt=task.prompt)


def _synopsis_instruction(task: Task, target: Document) -> str:
    return SYNOPSIS_TEMPLATE.format(content=target.content, prompt=task.prompt).rstrip()


def _summary_instruction(task: Task, target: Document) -> str:
    return SUMMARY_TEMPLATE.format(
        title=target.title,
        doc_type=DOC_TYPE_LABELS.get(target.type, target.type.value),
        content=target.content,
    )


FINAL_INSTRUCTION_BUILDERS: dict[TaskType, Callable[[Task, Document], str]] = {
    TaskType.CONTENT: _content_instruction,
    TaskType.OUTLINE: _outline_instruction,
    TaskType.IMPROVEMENT: _improvement_instruction,
    TaskType.NOTES: _notes_instruction,
    TaskType.OTHER: _other_instruction,
    TaskType.SYNOPSIS: _synopsis_instruction,
    TaskType.SUMMARY: _summary_instruction,
}


def build_final_instruction(task: Task, target: Document) -> str:
    """按任务类型模板构建最终 user 指令"""
    ensure_prompt_present(task)
    return FINAL_INSTRUCTION_BUILDERS[task.type](task, target)


def related_doc_header(title: str, field_type: TaskType) -> str:
    """相关文档的标题行：文档标题 + 字段类型标签"""
    return f"# {title}（{TASK_TYPE_LABELS[TaskType(field_type)]}）"


class PromptAssembler:
    """Prompt 组装器"""

    def __init__(self, document_store: DocumentStore) -> None:
        self._documents = document_store

    async def assemble(self, task: Task) -> AssembledPrompt:
        """组装任务的 system prompt 与对话轮次

        Raises:
            PreconditionError: 必填 prompt 缺失（在任何读取之前检查）
            NotFoundError: 目标文档不存在
        """
        ensure_prompt_present(task)

        target = await self._documents.get_document(task.doc_id)
        if target is None:
            raise NotFoundError(f"Document {task.doc_id} not found")

        turns = [
            ChatMessage(role="user", content=RELATED_DOCS_INTRO),
            ChatMessage(role="assistant", content=RELATED_DOCS_INTRO_ACK),
        ]
        for ref in task.related_docs:
            turns.extend(await self._related_doc_turns(task, ref.document_id, ref.field_type))

        turns.append(ChatMessage(role="user", content=build_final_instruction(task, target)))

        log.debug(
            "prompt_assembled",
            task_id=task.task_id,
            task_type=task.type.value,
            related_doc_count=len(task.related_docs),
            turn_count=len(turns),
        )
        return AssembledPrompt(system=system_prompt(task.type), turns=turns)

    async def _related_doc_turns(
        self, task: Task, document_id: str, field_type: TaskType
    ) -> list[ChatMessage]:
        """单个相关文档的 user/assistant 对；文档缺失时以空正文代替"""
        doc = await self._documents.get_document(document_id)
        if doc is None:
            log.warning(
                "related_document_missing",
                task_id=task.task_id,
                document_id=document_id,
                field_type=TaskType(field_type).value,
            )
            title, body = document_id, ""
        else:
            title, body = doc.title, get_document_field(doc, field_type)

        return [
            ChatMessage(role="user", content=f"{related_doc_header(title, field_type)}\n\n{body}"),
            ChatMessage(role="assistant", content=RELATED_DOC_ACK),
        ]
