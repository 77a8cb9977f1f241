"""ProviderConfig -- Provider 配置解析

每次任务执行时由项目的 AI API 配置构建，不存在进程级共享的 client 状态。
max_tokens / temperature 必须能转换为数值，非法值是配置错误而不是静默默认。
"""

import math
import os

import httpx
import structlog
from pydantic import BaseModel, Field, SecretStr
from scribeflow.core.config import get_llm_timeout_s
from scribeflow.core.exceptions import ConfigError
from scribeflow.core.models import AIApiSettings

log = structlog.get_logger()

DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 1.0


class ProviderConfig(BaseModel):
    """单次执行使用的 provider 配置（已校验）"""

    name: str = Field(default="", description="配置名称")
    api_key: SecretStr = Field(default=SecretStr(""), description="Bearer token")
    base_url: str = Field(description="OpenAI 兼容 API 基础 URL")
    model: str = Field(description="模型 ID")
    max_tokens: int = Field(gt=0, description="最大生成 token 数")
    temperature: float = Field(ge=0.0, description="采样温度")
    timeout_s: int = Field(default=120, ge=1, description="请求超时（秒）")

    @property
    def chat_completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    @classmethod
    def from_settings(
        cls,
        settings: AIApiSettings,
        timeout_s: int | None = None,
    ) -> "ProviderConfig":
        """由项目保存的原始配置构建 ProviderConfig

        Raises:
            ConfigError: base_url/model 缺失，base_url 不是 http(s) 绝对地址，
                或 max_tokens/temperature 无法转换为数值
        """
        label = settings.name or settings.model or "provider"
        if not settings.base_url.strip():
            raise ConfigError(f"{label}: base_url is not configured")
        _check_base_url(settings.base_url.strip(), label)
        if not settings.model.strip():
            raise ConfigError(f"{label}: model is not configured")

        max_tokens = _coerce_int(
            settings.max_tokens, "max_tokens", label, default=DEFAULT_MAX_TOKENS
        )
        temperature = _coerce_float(
            settings.temperature, "temperature", label, default=DEFAULT_TEMPERATURE
        )
        if max_tokens <= 0:
            raise ConfigError(f"{label}: max_tokens must be positive, got {max_tokens}")
        if temperature < 0:
            raise ConfigError(f"{label}: temperature must not be negative, got {temperature}")

        return cls(
            name=settings.name,
            api_key=SecretStr(settings.api_key),
            base_url=settings.base_url.strip(),
            model=settings.model.strip(),
            max_tokens=max_tokens,
            temperature=temperature,
            timeout_s=timeout_s or get_llm_timeout_s(),
        )


_ALLOWED_SCHEMES = frozenset({"http", "https"})


def _check_base_url(base_url: str, label: str) -> None:
    """base_url 必须是带主机名的 http(s) 绝对地址"""
    try:
        url = httpx.URL(base_url)
    except httpx.InvalidURL as e:
        raise ConfigError(f"{label}: base_url is not a valid URL, got {base_url!r}") from e
    if url.scheme not in _ALLOWED_SCHEMES or not url.host:
        raise ConfigError(
            f"{label}: base_url must be an absolute http(s) URL, got {base_url!r}"
        )


def _coerce_int(value, field: str, label: str, default: int) -> int:
    """将配置值转换为 int；None/空串使用默认值，其余非法值抛 ConfigError"""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{label}: {field} must be numeric, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{label}: {field} must be numeric, got {value!r}") from e
    if not math.isfinite(number) or not number.is_integer():
        raise ConfigError(f"{label}: {field} must be an integer, got {value!r}")
    return int(number)


def _coerce_float(value, field: str, label: str, default: float) -> float:
    """将配置值转换为 float；None/空串使用默认值，其余非法值抛 ConfigError"""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{label}: {field} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{label}: {field} must be numeric, got {value!r}") from e
    if not math.isfinite(number):
        raise ConfigError(f"{label}: {field} must be finite, got {value!r}")
    return number


def load_default_provider_settings() -> AIApiSettings | None:
    """从环境变量加载默认 AI API 配置（项目未选择 provider 时使用）

    环境变量映射:
        SCRIBEFLOW_LLM_BASE_URL -> base_url（未设置时返回 None）
        SCRIBEFLOW_LLM_API_KEY -> api_key
        SCRIBEFLOW_LLM_MODEL -> model
        SCRIBEFLOW_LLM_MAX_TOKENS -> max_tokens
        SCRIBEFLOW_LLM_TEMPERATURE -> temperature

    Returns:
        AIApiSettings（原始值，校验在 ProviderConfig.from_settings 中进行）
    """
    base_url = os.environ.get("SCRIBEFLOW_LLM_BASE_URL")
    if not base_url:
        return None

    settings = AIApiSettings(
        name=os.environ.get("SCRIBEFLOW_LLM_NAME", "default"),
        api_key=os.environ.get("SCRIBEFLOW_LLM_API_KEY", ""),
        base_url=base_url,
        model=os.environ.get("SCRIBEFLOW_LLM_MODEL", ""),
        max_tokens=os.environ.get("SCRIBEFLOW_LLM_MAX_TOKENS"),
        temperature=os.environ.get("SCRIBEFLOW_LLM_TEMPERATURE"),
    )
    log.debug("default_provider_settings_loaded", name=settings.name, model=settings.model)
    return settings


def resolve_provider_config(project_settings: AIApiSettings | None) -> ProviderConfig:
    """解析一次执行使用的 provider 配置

    优先使用项目配置，其次环境变量默认配置。

    Raises:
        ConfigError: 两者都不存在或配置非法
    """
    settings = project_settings or load_default_provider_settings()
    if settings is None:
        raise ConfigError("project has no AI provider configured")
    return ProviderConfig.from_settings(settings)
