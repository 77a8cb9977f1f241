"""错误响应 -- 异常到 JSON 信封的映射

信封格式：{"success": false, "message": "..."}
"""

from scribeflow.core.exceptions import ConflictError, NotFoundError, PreconditionError
from starlette.responses import JSONResponse


def status_code_for(error: Exception) -> int:
    """按异常类型选择 HTTP 状态码（子类优先）"""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, PreconditionError):
        return 400
    # ProviderError 及其他异常
    return 500


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
    )


def error_response_for(error: Exception) -> JSONResponse:
    message = getattr(error, "message", None) or str(error)
    return error_response(status_code_for(error), message)
