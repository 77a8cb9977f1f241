"""LoggingMiddleware -- 请求级日志

request_id 优先沿用调用方的 X-Request-ID（长度受限），否则生成 ULID；
绑定到 structlog contextvars，并通过 X-Request-ID 响应头返回。
探活路径只记录 debug 日志。
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_REQUEST_ID_LENGTH = 64
_PROBE_PATHS = frozenset({"/health", "/ready"})


def resolve_request_id(incoming: str | None) -> str:
    """沿用合法的调用方 request_id，否则生成新的 ULID"""
    if incoming and len(incoming) <= _MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return str(ULID())


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )

        log = structlog.get_logger()
        emit = log.adebug if path in _PROBE_PATHS else log.ainfo
        start_time = time.monotonic()
        await emit("request_started")

        response = await call_next(request)

        # 流式响应此时只发送了响应头，duration 不含 body 传输时间
        duration_ms = int((time.monotonic() - start_time) * 1000)
        if response.status_code >= 500:
            await log.awarning(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )
        else:
            await emit(
                "request_completed", status_code=response.status_code, duration_ms=duration_ms
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
