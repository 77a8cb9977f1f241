"""structlog 配置

输出模式由 SCRIBEFLOW_LOG_FORMAT 决定：dev 为控制台可读输出，json 为一行一个事件。
标准库 logging（uvicorn、httpx 等）经 ProcessorFormatter 走同一条处理链。
"""

import logging
import os

import structlog

LOG_FORMAT_ENV = "SCRIBEFLOW_LOG_FORMAT"
LOG_LEVEL_ENV = "SCRIBEFLOW_LOG_LEVEL"

# 事件字典中需要脱敏的键（provider 凭据）
SENSITIVE_KEYS = frozenset({"api_key", "authorization", "Authorization"})
REDACTED = "***"

# 第三方 logger 的最低级别：请求日志由 LoggingMiddleware 负责，
# 出站请求日志由 provider client 负责
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiosqlite": logging.WARNING,
}


def redact_secrets(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """把凭据类字段替换为占位符"""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 与标准库 logging

    Args:
        log_format: "json" 或 "dev"，默认读取 SCRIBEFLOW_LOG_FORMAT（缺省 dev）
        log_level: 日志级别名，默认读取 SCRIBEFLOW_LOG_LEVEL（缺省 INFO）
    """
    log_format = (log_format or os.environ.get(LOG_FORMAT_ENV, "dev")).lower()
    log_level = (log_level or os.environ.get(LOG_LEVEL_ENV, "INFO")).upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=shared_processors,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
