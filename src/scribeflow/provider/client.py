"""ChatCompletionClient -- OpenAI 兼容 chat completion 流式调用

每次调用都接收显式的 ProviderConfig，不在 client 上保存 provider 配置。
不做重试：重试策略属于调用方。
"""

import json
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog

from .config import ProviderConfig
from .exceptions import ProviderError, ProviderUnreachableError
from .models import ChatMessage

log = structlog.get_logger()

# 请求阶段的传输类异常（触发 ProviderUnreachableError）
# httpx.TransportError 覆盖连接、超时、协议、代理错误；InvalidURL 在构建请求时抛出
_CONNECTION_ERROR_TYPES = (
    httpx.TransportError,
    httpx.InvalidURL,
    ConnectionError,
    OSError,
)


def build_request_body(
    system_prompt: str,
    turns: list[ChatMessage],
    config: ProviderConfig,
) -> dict:
    """构建 chat completion 请求体

    messages 以 system 消息开头，其后为组装好的对话轮次。
    """
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": turn.role, "content": turn.content} for turn in turns)
    return {
        "model": config.model,
        "messages": messages,
        "max_tokens": int(config.max_tokens),
        "temperature": float(config.temperature),
        "stream": True,
    }


def parse_error_body(body: bytes, status_code: int, reason_phrase: str) -> str:
    """从非 2xx 响应体中解析错误信息

    优先读取 {"error": {"message": ...}} / {"error": "..."} / {"message": ...}，
    无法解析时回退为 "HTTP error: {status} {reason}"。
    """
    fallback = f"HTTP error: {status_code} {reason_phrase}".rstrip()
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return fallback

    if not isinstance(data, dict):
        return fallback
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if data.get("message"):
        return str(data["message"])
    return fallback


class ProviderStream:
    """已建立的 provider 流式响应"""

    def __init__(self, response: httpx.Response, config: ProviderConfig) -> None:
        self._response = response
        self._config = config

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """原始字节流；读取中的连接错误包装为 ProviderUnreachableError"""
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise ProviderUnreachableError(self._config.base_url, e) from e


class ChatCompletionClient:
    """OpenAI 兼容 provider 客户端

    http_client 为可选的共享连接池（不携带任何 provider 配置）；
    未提供时每次调用创建并关闭一个临时 AsyncClient。
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._http_client = http_client

    @asynccontextmanager
    async def open_stream(
        self,
        system_prompt: str,
        turns: list[ChatMessage],
        config: ProviderConfig,
    ) -> AsyncIterator[ProviderStream]:
        """发起流式 chat completion 请求

        Args:
            system_prompt: system 消息文本
            turns: 对话轮次
            config: 本次执行的 provider 配置

        Yields:
            ProviderStream（响应状态已确认为 2xx）

        Raises:
            ProviderUnreachableError: 连接失败或超时
            ProviderError: provider 返回非 2xx
        """
        body = build_request_body(system_prompt, turns, config)
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        api_key = config.api_key.get_secret_value()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"

        url = config.chat_completions_url
        start_time = time.monotonic()
        log.debug(
            "provider_request_start",
            url=url,
            model=config.model,
            message_count=len(body["messages"]),
        )

        owns_client = self._http_client is None
        http_client = self._http_client or httpx.AsyncClient()
        try:
            try:
                request = http_client.build_request(
                    "POST",
                    url,
                    json=body,
                    headers=headers,
                    timeout=httpx.Timeout(config.timeout_s),
                )
                response = await http_client.send(request, stream=True)
            except _CONNECTION_ERROR_TYPES as e:
                log.error(
                    "provider_unreachable",
                    url=url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ProviderUnreachableError(config.base_url, e) from e

            try:
                if not response.is_success:
                    try:
                        error_body = await response.aread()
                    except httpx.HTTPError as e:
                        raise ProviderUnreachableError(config.base_url, e) from e
                    message = parse_error_body(
                        error_body, response.status_code, response.reason_phrase
                    )
                    log.error(
                        "provider_request_failed",
                        url=url,
                        status_code=response.status_code,
                        error=message,
                    )
                    raise ProviderError(message, status_code=response.status_code)

                log.info(
                    "provider_stream_opened",
                    model=config.model,
                    status_code=response.status_code,
                    duration_ms=int((time.monotonic() - start_time) * 1000),
                )
                yield ProviderStream(response, config)
            finally:
                await response.aclose()
        finally:
            if owns_client:
                await http_client.aclose()
