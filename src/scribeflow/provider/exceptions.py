"""Provider 异常体系"""


class ProviderError(Exception):
    """Provider 调用失败（非 2xx 响应、流中错误信封、空响应体等）"""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """
        Args:
            message: 错误描述（已解析的 provider 错误信息）
            status_code: provider 返回的 HTTP 状态码，非 HTTP 错误时为 None
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProviderUnreachableError(ProviderError):
    """Provider 不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, base_url: str, original_error: Exception) -> None:
        """
        Args:
            base_url: 尝试连接的 provider 地址
            original_error: 原始异常
        """
        super().__init__(f"Provider unreachable: {base_url} -- {original_error}")
        self.base_url = base_url
        self.original_error = original_error


class DecodeError(Exception):
    """单行 SSE 数据无法解析

    此异常不中断流：解码器记录日志后跳过该行。
    """

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"malformed stream line: {reason}")
        self.line = line
        self.reason = reason
