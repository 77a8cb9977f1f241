"""执行路由测试

测试内容：
1. 成功：流式响应头 + body 为增量拼接
2. 流开始前的错误返回 JSON 信封（404/409/400/500）
3. 流中断：已发送内容保留，任务 failed
"""

import httpx
from scribeflow.core.models import TaskStatus, TaskType


def _execute_url(project_id: str, task_id: str) -> str:
    return f"/api/projects/{project_id}/tasks/{task_id}/execute"


class TestExecuteSuccess:
    """成功执行"""

    async def test_streams_body_with_headers(
        self, client, store_group, fake_provider, seed, make_task
    ):
        fake_provider.stream_deltas(["Hello", " ", "world"])
        task = await make_task(type=TaskType.SUMMARY)

        resp = await client.post(_execute_url(seed.project_id, task.task_id))

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"
        assert resp.headers["connection"] == "keep-alive"
        assert resp.text == "Hello world"

        done = await store_group.task_store.get_task(task.task_id)
        assert done.status == TaskStatus.COMPLETED
        assert done.result == "Hello world"

    async def test_request_id_header(self, client, fake_provider, seed, make_task):
        fake_provider.stream_deltas(["x"])
        task = await make_task(type=TaskType.SUMMARY)
        resp = await client.post(_execute_url(seed.project_id, task.task_id))
        assert resp.headers.get("X-Request-ID")


class TestExecuteRejected:
    """流开始前的错误"""

    async def test_unknown_task_404(self, client, seed):
        resp = await client.post(_execute_url(seed.project_id, "01JNOTFOUND000000000000000"))
        assert resp.status_code == 404
        body = resp.json()
        assert body["success"] is False
        assert "not found" in body["message"]

    async def test_second_execute_409(self, client, fake_provider, seed, make_task):
        fake_provider.stream_deltas(["done"])
        task = await make_task(type=TaskType.SUMMARY)
        first = await client.post(_execute_url(seed.project_id, task.task_id))
        assert first.status_code == 200

        second = await client.post(_execute_url(seed.project_id, task.task_id))

        assert second.status_code == 409
        assert second.json() == {"success": False, "message": "task is already completed"}
        assert len(fake_provider.requests) == 1

    async def test_missing_prompt_400(self, client, store_group, fake_provider, seed, make_task):
        task = await make_task(type=TaskType.CONTENT, prompt="")

        resp = await client.post(_execute_url(seed.project_id, task.task_id))

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "message": "content must have a prompt"}
        stored = await store_group.task_store.get_task(task.task_id)
        assert stored.status == TaskStatus.PENDING
        assert fake_provider.requests == []

    async def test_missing_provider_config_400(self, client, seed_project, make_task):
        project_id = await seed_project(ai_api=None)
        task = await make_task(type=TaskType.SUMMARY, project_id=project_id)

        resp = await client.post(_execute_url(project_id, task.task_id))

        assert resp.status_code == 400
        assert "no AI provider configured" in resp.json()["message"]

    async def test_provider_error_500(self, client, store_group, fake_provider, seed, make_task):
        fake_provider.fail_with_status(401, b'{"error": {"message": "Invalid API key"}}')
        task = await make_task(type=TaskType.SUMMARY)

        resp = await client.post(_execute_url(seed.project_id, task.task_id))

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "Invalid API key"}
        failed = await store_group.task_store.get_task(task.task_id)
        assert failed.status == TaskStatus.FAILED
        assert failed.result == "Error: Invalid API key"

    async def test_scheme_less_base_url_400(
        self, client, store_group, fake_provider, seed_project, ai_api_settings, make_task
    ):
        broken = ai_api_settings.model_copy(update={"base_url": "api.deepseek.com/v1"})
        project_id = await seed_project(ai_api=broken)
        task = await make_task(type=TaskType.SUMMARY, project_id=project_id)

        resp = await client.post(_execute_url(project_id, task.task_id))

        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "base_url" in resp.json()["message"]
        stored = await store_group.task_store.get_task(task.task_id)
        assert stored.status == TaskStatus.PENDING
        assert fake_provider.requests == []

    async def test_protocol_error_500_and_task_failed(
        self, client, store_group, fake_provider, seed, make_task
    ):
        fake_provider.connect_error = httpx.RemoteProtocolError("peer closed connection")
        task = await make_task(type=TaskType.SUMMARY)

        resp = await client.post(_execute_url(seed.project_id, task.task_id))

        assert resp.status_code == 500
        assert resp.json()["success"] is False
        failed = await store_group.task_store.get_task(task.task_id)
        assert failed.status == TaskStatus.FAILED

    async def test_unexpected_error_500_envelope(
        self, client, store_group, fake_provider, seed, make_task
    ):
        fake_provider.connect_error = RuntimeError("transport exploded")
        task = await make_task(type=TaskType.SUMMARY)

        resp = await client.post(_execute_url(seed.project_id, task.task_id))

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "message": "transport exploded"}
        failed = await store_group.task_store.get_task(task.task_id)
        assert failed.status == TaskStatus.FAILED
        assert failed.result == "Error: transport exploded"

    async def test_provider_unreachable_500(self, client, fake_provider, seed, make_task):
        fake_provider.connect_error = httpx.ConnectError("connection refused")
        task = await make_task(type=TaskType.SUMMARY)

        resp = await client.post(_execute_url(seed.project_id, task.task_id))

        assert resp.status_code == 500
        assert resp.json()["message"].startswith("Provider unreachable")


class TestExecuteAborted:
    """流开始后的错误"""

    async def test_mid_stream_failure_keeps_partial(
        self, client, store_group, fake_provider, seed, make_task
    ):
        fake_provider.stream_deltas(["Once upon"], done=False)
        fake_provider.error = httpx.ReadError("connection reset")
        task = await make_task(type=TaskType.SUMMARY)

        resp = await client.post(_execute_url(seed.project_id, task.task_id))

        assert resp.status_code == 200
        assert resp.text.startswith("Once upon")
        failed = await store_group.task_store.get_task(task.task_id)
        assert failed.status == TaskStatus.FAILED
        assert failed.result.startswith("Once upon\n\nError: ")
