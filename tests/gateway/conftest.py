"""gateway 测试配置 -- FastAPI app + httpx AsyncClient

绕过 lifespan，手动注入 StoreGroup 与连接到 FakeProvider 的 client。
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from scribeflow.gateway.services.task_executor import ExecutorSettings


@pytest.fixture(autouse=True)
def _no_default_provider(monkeypatch):
    monkeypatch.delenv("SCRIBEFLOW_LLM_BASE_URL", raising=False)


@pytest_asyncio.fixture
async def test_app(store_group, provider_client):
    from scribeflow.gateway.main import create_app

    app = create_app()
    app.state.store_group = store_group
    app.state.provider_client = provider_client
    app.state.executor_settings = ExecutorSettings()
    yield app


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """流中断会以应用异常的形式结束响应，这里只保留已发送的部分"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app, raise_app_exceptions=False),
        base_url="http://test",
    ) as ac:
        yield ac
