"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与执行器

共享实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from scribeflow.core.store import StoreGroup
from scribeflow.provider import ChatCompletionClient

from .services.task_executor import ExecutorSettings, TaskExecutor


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_provider_client(request: Request) -> ChatCompletionClient:
    """从 app.state 获取 provider client（只持有连接池）"""
    client = getattr(request.app.state, "provider_client", None)
    if client is None:
        client = ChatCompletionClient()
        request.app.state.provider_client = client
    return client


def get_task_executor(request: Request) -> TaskExecutor:
    """构建 TaskExecutor（无状态，每个请求一个）"""
    settings = getattr(request.app.state, "executor_settings", None)
    if settings is None:
        settings = ExecutorSettings.from_env()
    return TaskExecutor(
        get_store_group(request),
        get_provider_client(request),
        settings=settings,
    )
