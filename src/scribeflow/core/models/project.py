"""Project Domain Model

项目保存所选 AI provider 的原始配置。数值字段按存储原样保留，
转换与校验由 provider 层完成（见 scribeflow.provider.config）。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class AIApiSettings(BaseModel):
    """项目选中的 AI API 配置（原始值）"""

    name: str = Field(default="", description="配置名称")
    api_key: str = Field(default="", description="Bearer token")
    base_url: str = Field(default="", description="OpenAI 兼容 API 基础 URL")
    model: str = Field(default="", description="模型 ID")
    max_tokens: int | float | str | None = Field(default=None, description="最大生成 token 数")
    temperature: int | float | str | None = Field(default=None, description="采样温度")


class Project(BaseModel):
    """Project 数据模型"""

    project_id: str = Field(description="唯一标识，ULID 格式")
    name: str = Field(default="", description="项目名称")
    ai_api: AIApiSettings | None = Field(default=None, description="AI provider 配置")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
