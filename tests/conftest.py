"""全局 pytest 配置 -- 临时 SQLite Store、种子数据、脚本化的 provider"""

import json
from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from scribeflow.core.models import (
    AIApiSettings,
    DocType,
    Document,
    Project,
    RelatedDocRef,
    Task,
    TaskType,
)
from scribeflow.core.store import (
    StoreGroup,
    create_document_record,
    create_project_record,
    create_store_group,
    create_task_record,
)
from scribeflow.provider import ChatCompletionClient
from ulid import ULID

TEST_BASE_URL = "http://llm.test/v1"


def sse_delta(content: str, finish_reason: str | None = None) -> bytes:
    """单个 `data:` 行（含结尾空行）"""
    payload = {"choices": [{"delta": {"content": content}, "finish_reason": finish_reason}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode()


SSE_DONE = b"data: [DONE]\n\n"


class ChunkedStream(httpx.AsyncByteStream):
    """按给定分块产出字节，可在末尾抛出传输异常"""

    def __init__(self, chunks: list[bytes], error: Exception | None = None) -> None:
        self._chunks = chunks
        self._error = error

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error

    async def aclose(self) -> None:
        pass


class FakeProvider:
    """记录请求并按脚本返回流式响应的 OpenAI 兼容 provider"""

    delta = staticmethod(sse_delta)
    DONE = SSE_DONE

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.chunks: list[bytes] = []
        self.error: Exception | None = None
        self.status_code = 200
        self.error_body = b""
        self.connect_error: Exception | None = None

    def stream_deltas(self, deltas: list[str], done: bool = True) -> None:
        self.chunks = [sse_delta(d) for d in deltas]
        if done:
            self.chunks.append(SSE_DONE)

    def fail_with_status(self, status_code: int, body: bytes = b"") -> None:
        self.status_code = status_code
        self.error_body = body

    @property
    def request_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.connect_error is not None:
            raise self.connect_error
        if self.status_code != 200:
            return httpx.Response(self.status_code, content=self.error_body)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            stream=ChunkedStream(list(self.chunks), self.error),
        )


@dataclass
class SeedData:
    """种子数据：一个项目 + 目标文档 + 两个相关文档"""

    project_id: str
    target_doc_id: str
    doc_a_id: str
    doc_b_id: str


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """已初始化的临时数据库 Store 组"""
    sg = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    yield sg
    await sg.conn.close()


@pytest_asyncio.fixture
async def fake_provider() -> AsyncGenerator[FakeProvider, None]:
    yield FakeProvider()


@pytest_asyncio.fixture
async def provider_client(
    fake_provider: FakeProvider,
) -> AsyncGenerator[ChatCompletionClient, None]:
    """连接到 FakeProvider 的 ChatCompletionClient"""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_provider.handler))
    yield ChatCompletionClient(http_client=http_client)
    await http_client.aclose()


def _project(project_id: str, ai_api: AIApiSettings | None) -> Project:
    now = datetime.now(UTC)
    return Project(
        project_id=project_id,
        name="测试项目",
        ai_api=ai_api,
        created_at=now,
        updated_at=now,
    )


def _document(doc_id: str, project_id: str, title: str, **fields) -> Document:
    now = datetime.now(UTC)
    return Document(
        doc_id=doc_id,
        project_id=project_id,
        title=title,
        created_at=now,
        updated_at=now,
        **fields,
    )


@pytest.fixture
def ai_api_settings() -> AIApiSettings:
    return AIApiSettings(
        name="test",
        api_key="sk-test",
        base_url=TEST_BASE_URL,
        model="test-model",
        max_tokens="2000",
        temperature="0.7",
    )


@pytest_asyncio.fixture
async def seed(store_group: StoreGroup, ai_api_settings: AIApiSettings) -> SeedData:
    """写入种子项目与文档"""
    data = SeedData(
        project_id=str(ULID()),
        target_doc_id=str(ULID()),
        doc_a_id=str(ULID()),
        doc_b_id=str(ULID()),
    )
    conn = store_group.conn
    await create_project_record(
        conn, store_group.project_store, _project(data.project_id, ai_api_settings)
    )
    await create_document_record(
        conn,
        store_group.document_store,
        _document(
            data.target_doc_id,
            data.project_id,
            "第一章",
            type=DocType.ARTICLE,
            content="Once there was a village.",
        ),
    )
    await create_document_record(
        conn,
        store_group.document_store,
        _document(data.doc_a_id, data.project_id, "主角", type=DocType.CHARACTER, summary="A summary"),
    )
    await create_document_record(
        conn,
        store_group.document_store,
        _document(data.doc_b_id, data.project_id, "序章", content="B content"),
    )
    return data


@pytest_asyncio.fixture
async def seed_project(store_group: StoreGroup) -> Callable[..., Awaitable[str]]:
    """创建额外项目的工厂（可指定 ai_api）"""

    async def _create(ai_api: AIApiSettings | None = None) -> str:
        project_id = str(ULID())
        await create_project_record(
            store_group.conn, store_group.project_store, _project(project_id, ai_api)
        )
        return project_id

    return _create


@pytest_asyncio.fixture
async def make_task(
    store_group: StoreGroup, seed: SeedData
) -> Callable[..., Awaitable[Task]]:
    """创建 pending 任务的工厂，默认指向种子项目的目标文档"""

    async def _create(
        type: TaskType = TaskType.CONTENT,
        prompt: str = "",
        related_docs: list[RelatedDocRef] | None = None,
        project_id: str | None = None,
        doc_id: str | None = None,
    ) -> Task:
        now = datetime.now(UTC)
        task = Task(
            task_id=str(ULID()),
            project_id=project_id or seed.project_id,
            doc_id=doc_id or seed.target_doc_id,
            type=type,
            prompt=prompt,
            related_docs=related_docs or [],
            created_at=now,
            updated_at=now,
        )
        await create_task_record(store_group.conn, store_group.task_store, task)
        return task

    return _create
