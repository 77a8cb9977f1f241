"""数据模型 -- ChatMessage + StreamResult"""

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """chat completion 消息（一轮对话）"""

    role: Literal["system", "user", "assistant"]
    content: str


class StreamResult(BaseModel):
    """一次流式调用的解码结果"""

    content: str = Field(default="", description="累计的完整文本")
    chunk_count: int = Field(default=0, ge=0, description="收到的 content 增量个数")
    malformed_lines: int = Field(default=0, ge=0, description="被跳过的非法行数")
    finish_reason: str | None = Field(default=None, description="最后一个 finish_reason")
    bytes_received: int = Field(default=0, ge=0, description="收到的原始字节数")
