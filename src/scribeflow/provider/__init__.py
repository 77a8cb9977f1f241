"""scribeflow Provider -- OpenAI 兼容 LLM 流式调用层

provider 层的公开接口导出。
"""

# 核心组件
from .client import ChatCompletionClient, ProviderStream, build_request_body, parse_error_body

# 配置
from .config import (
    ProviderConfig,
    load_default_provider_settings,
    resolve_provider_config,
)
from .decoder import StreamDecoder

# 异常
from .exceptions import DecodeError, ProviderError, ProviderUnreachableError
from .models import ChatMessage, StreamResult

__all__ = [
    "ChatMessage",
    "StreamResult",
    "ChatCompletionClient",
    "ProviderStream",
    "build_request_body",
    "parse_error_body",
    "StreamDecoder",
    "ProviderConfig",
    "load_default_provider_settings",
    "resolve_provider_config",
    "ProviderError",
    "ProviderUnreachableError",
    "DecodeError",
]
