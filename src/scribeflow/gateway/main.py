"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + provider 连接池 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from scribeflow import __version__
from scribeflow.core.config import get_db_path
from scribeflow.core.store import create_store_group
from scribeflow.provider import ChatCompletionClient

from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import execute, health, tasks
from .services.task_executor import ExecutorSettings

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 和 provider 连接池，关闭时清理"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    app.state.store_group = store_group

    # 共享连接池不携带 provider 配置，每次执行显式传入 ProviderConfig
    http_client = httpx.AsyncClient()
    app.state.provider_client = ChatCompletionClient(http_client=http_client)

    settings = ExecutorSettings.from_env()
    app.state.executor_settings = settings
    log.info(
        "gateway_started",
        db_path=db_path,
        partial_write_mode=settings.partial_write_mode,
        partial_write_interval_ms=settings.partial_write_interval_ms,
        error_sentinel=settings.error_sentinel,
    )

    yield

    await http_client.aclose()
    if getattr(app.state, "store_group", None):
        await app.state.store_group.conn.close()
    log.info("gateway_stopped")


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="scribeflow Gateway",
        version=__version__,
        description="写作项目 AI 任务执行 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()

    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(execute.router, tags=["execute"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
