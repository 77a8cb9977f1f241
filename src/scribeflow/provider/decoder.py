"""StreamDecoder -- SSE 风格字节流增量解码

将 provider 的 chat completion 流（`data: {json}` 行，`data: [DONE]` 结束）
解码为文本增量。

行为规则:
    1. 字节按块读取，使用有状态的增量 UTF-8 解码器（多字节字符可跨块）
    2. 跨块的不完整行暂存到下一块，空行丢弃
    3. 非 `data:` 行（SSE 注释、event:、id:）忽略，`[DONE]` 跳过
    4. 单行 JSON 非法 -> 记录日志并跳过，不中断流
    5. 行内出现 error 信封 -> ProviderError
    6. 每个 content 增量先累计，再交给调用方，处理完才读取下一块
"""

import codecs
import inspect
import json
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterator

import structlog

from .exceptions import DecodeError, ProviderError
from .models import StreamResult

log = structlog.get_logger()

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

# 日志中保留的原始行长度
_LOG_LINE_PREVIEW = 200

DeltaCallback = Callable[[str], Awaitable[None] | None]


class StreamDecoder:
    """单次调用的流解码器

    每次调用 iter_deltas() 都会重置内部状态，不在调用之间共享可变状态。
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending_line = ""
        self._parts: list[str] = []
        self._malformed_lines = 0
        self._finish_reason: str | None = None
        self._bytes_received = 0

    @property
    def text(self) -> str:
        """目前为止累计的文本"""
        return "".join(self._parts)

    @property
    def result(self) -> StreamResult:
        return StreamResult(
            content=self.text,
            chunk_count=len(self._parts),
            malformed_lines=self._malformed_lines,
            finish_reason=self._finish_reason,
            bytes_received=self._bytes_received,
        )

    async def iter_deltas(self, byte_stream: AsyncIterable[bytes]) -> AsyncIterator[str]:
        """逐个产出文本增量

        Raises:
            ProviderError: 流中出现 error 信封，或整个响应体为空
        """
        self._reset()
        async for chunk in byte_stream:
            if not chunk:
                continue
            self._bytes_received += len(chunk)
            for delta in self._feed(self._text_decoder.decode(chunk)):
                yield delta

        for delta in self._feed(self._text_decoder.decode(b"", final=True), final=True):
            yield delta

        if self._bytes_received == 0:
            raise ProviderError("Provider returned an empty response body")

    async def decode(
        self,
        byte_stream: AsyncIterable[bytes],
        on_delta: DeltaCallback | None = None,
    ) -> str:
        """消费整个流并返回累计文本

        Args:
            byte_stream: 原始字节流
            on_delta: 每个增量的回调（同步或异步），返回前不会读取下一块

        Returns:
            完整的累计文本
        """
        async for delta in self.iter_deltas(byte_stream):
            if on_delta is not None:
                outcome = on_delta(delta)
                if inspect.isawaitable(outcome):
                    await outcome
        return self.text

    def _feed(self, text: str, final: bool = False) -> Iterator[str]:
        """拼接暂存行并逐行解析，最后一段不完整的行留到下一块"""
        lines = (self._pending_line + text).split("\n")
        self._pending_line = "" if final else lines.pop()

        for raw_line in lines:
            line = raw_line.rstrip("\r")
            if not line.strip():
                continue
            try:
                delta = self._parse_line(line)
            except DecodeError as e:
                self._malformed_lines += 1
                log.warning(
                    "stream_line_malformed",
                    reason=e.reason,
                    line=e.line[:_LOG_LINE_PREVIEW],
                )
                continue
            if delta:
                self._parts.append(delta)
                yield delta

    def _parse_line(self, line: str) -> str | None:
        """解析单行，返回 content 增量（无增量时返回 None）"""
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if payload == DONE_SENTINEL:
            return None

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise DecodeError(line, str(e)) from e

        if not isinstance(data, dict):
            raise DecodeError(line, "payload is not a JSON object")

        if data.get("error"):
            raise ProviderError(_error_message(data["error"]))

        choices = data.get("choices")
        if not choices:
            # usage 等不含 choices 的块
            return None
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise DecodeError(line, "choices is not a list of objects")

        choice = choices[0]
        if choice.get("finish_reason"):
            self._finish_reason = choice["finish_reason"]

        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        if isinstance(content, str) and content:
            return content
        return None


def _error_message(error) -> str:
    """从 error 信封提取错误信息"""
    if isinstance(error, dict):
        return str(error.get("message") or error.get("type") or "Unknown provider error")
    return str(error)
