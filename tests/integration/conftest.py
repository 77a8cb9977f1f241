"""集成测试共享 fixture"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from scribeflow.gateway.services.task_executor import ExecutorSettings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SCRIBEFLOW_DB_PATH", str(tmp_path / "sqlite" / "test.db"))
    monkeypatch.delenv("SCRIBEFLOW_LLM_BASE_URL", raising=False)


@pytest_asyncio.fixture
async def integration_app(store_group, provider_client):
    """集成测试用 FastAPI app（共享种子数据库与脚本化 provider）"""
    from scribeflow.gateway.main import create_app

    app = create_app()
    app.state.store_group = store_group
    app.state.provider_client = provider_client
    app.state.executor_settings = ExecutorSettings()
    yield app


@pytest_asyncio.fixture
async def api(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app, raise_app_exceptions=False),
        base_url="http://test",
    ) as ac:
        yield ac
