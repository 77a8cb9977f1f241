"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、流式增量写入策略、错误哨兵行、LLM 超时等可配置项。
"""

import os
from pathlib import Path

import structlog

log = structlog.get_logger()

# 增量结果写入模式
PARTIAL_WRITE_MODE_AWAIT = "await"
PARTIAL_WRITE_MODE_DETACH = "detach"
_PARTIAL_WRITE_MODES = {PARTIAL_WRITE_MODE_AWAIT, PARTIAL_WRITE_MODE_DETACH}

# 流中断时附加到调用方流末尾的哨兵前缀
STREAM_ERROR_SENTINEL_PREFIX = "[[scribeflow:error]]"


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("SCRIBEFLOW_DATA_DIR", "data"))


def _get_int_env(name: str, default: int) -> int:
    """读取整数环境变量，非法值记录 warning 并使用默认值"""
    val = os.environ.get(name)
    if val is None or val == "":
        return default
    try:
        return int(val)
    except ValueError:
        log.warning("invalid_int_config", env_var=name, value=val, fallback=default)
        return default


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "SCRIBEFLOW_DB_PATH",
        str(_get_base_dir() / "sqlite" / "scribeflow.db"),
    )


def get_partial_write_mode() -> str:
    """获取流式期间增量结果写入模式

    - "await": 每个增量写入按顺序 await 完成后再读下一块
    - "detach": 后台写入，不阻塞流（合并写入，同一时刻最多一个在途写入）
    """
    mode = os.environ.get("SCRIBEFLOW_PARTIAL_WRITE_MODE", PARTIAL_WRITE_MODE_AWAIT).lower()
    if mode not in _PARTIAL_WRITE_MODES:
        log.warning(
            "invalid_partial_write_mode",
            env_var="SCRIBEFLOW_PARTIAL_WRITE_MODE",
            value=mode,
            fallback=PARTIAL_WRITE_MODE_AWAIT,
        )
        return PARTIAL_WRITE_MODE_AWAIT
    return mode


def get_partial_write_interval_ms() -> int:
    """两次增量写入之间的最小间隔（毫秒），0 表示每个增量都写"""
    return max(0, _get_int_env("SCRIBEFLOW_PARTIAL_WRITE_INTERVAL_MS", 0))


def get_stream_error_sentinel_enabled() -> bool:
    """流中断前是否向调用方输出错误哨兵行"""
    return os.environ.get("SCRIBEFLOW_STREAM_ERROR_SENTINEL", "true").lower() == "true"


def get_llm_timeout_s() -> int:
    """Provider 请求超时（秒）"""
    return max(1, _get_int_env("SCRIBEFLOW_LLM_TIMEOUT_S", 120))


# 任务标题/日志中的 prompt 预览截断长度
PROMPT_PREVIEW_LENGTH: int = 100
