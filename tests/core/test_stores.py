"""Store 与事务封装测试

测试内容：
1. 任务/文档/项目读写与 JSON 列往返
2. 条件更新：状态只前进，并发执行只有一个成功
3. 累计结果只在 generating 时写入，终态结果不被覆盖
4. 编辑只允许 pending
5. 结果写回文档 + 历史记录
"""

import pytest
from scribeflow.core.exceptions import ConflictError
from scribeflow.core.models import RelatedDocRef, TaskStatus, TaskType
from scribeflow.core.store import (
    InvalidTransitionError,
    TaskStatusConflictError,
    apply_task_result_to_document,
    delete_task_record,
    save_partial_result,
    transition_task_status,
    update_pending_task,
    verify_wal_mode,
)


class TestStoreReads:
    """读取测试"""

    async def test_wal_mode_enabled(self, store_group):
        assert await verify_wal_mode(store_group.conn) is True

    async def test_task_roundtrip_keeps_related_doc_order(self, store_group, seed, make_task):
        refs = [
            RelatedDocRef(document_id=seed.doc_a_id, field_type=TaskType.SUMMARY),
            RelatedDocRef(document_id=seed.doc_b_id, field_type=TaskType.CONTENT),
        ]
        task = await make_task(type=TaskType.CONTENT, prompt="写下一章", related_docs=refs)

        loaded = await store_group.task_store.find_task(seed.project_id, task.task_id)
        assert loaded is not None
        assert loaded.status == TaskStatus.PENDING
        assert [r.document_id for r in loaded.related_docs] == [seed.doc_a_id, seed.doc_b_id]
        assert [r.field_type for r in loaded.related_docs] == [TaskType.SUMMARY, TaskType.CONTENT]

    async def test_find_task_scoped_to_project(self, store_group, seed, make_task, seed_project):
        task = await make_task(type=TaskType.SUMMARY)
        other_project = await seed_project()
        assert await store_group.task_store.find_task(other_project, task.task_id) is None
        assert await store_group.task_store.find_task(seed.project_id, "missing") is None

    async def test_find_document_field(self, store_group, seed):
        value = await store_group.document_store.find_document_field(
            seed.doc_a_id, TaskType.SUMMARY
        )
        assert value == "A summary"
        assert await store_group.document_store.find_document_field("missing", "content") is None

    async def test_find_project_provider_config(self, store_group, seed, seed_project):
        settings = await store_group.project_store.find_project_provider_config(seed.project_id)
        assert settings is not None
        assert settings.model == "test-model"
        assert settings.max_tokens == "2000"

        bare_project = await seed_project()
        assert await store_group.project_store.find_project_provider_config(bare_project) is None
        assert await store_group.project_store.find_project_provider_config("missing") is None

    async def test_list_tasks_filters(self, store_group, seed, make_task):
        t1 = await make_task(type=TaskType.SUMMARY)
        t2 = await make_task(type=TaskType.SUMMARY, doc_id=seed.doc_b_id)

        all_tasks = await store_group.task_store.list_tasks(project_id=seed.project_id)
        assert {t.task_id for t in all_tasks} == {t1.task_id, t2.task_id}

        by_doc = await store_group.task_store.list_tasks(
            project_id=seed.project_id, doc_id=seed.doc_b_id
        )
        assert [t.task_id for t in by_doc] == [t2.task_id]

        generating = await store_group.task_store.list_tasks(status="generating")
        assert generating == []


class TestStatusTransitions:
    """状态流转写入测试"""

    async def test_forward_transition(self, store_group, make_task):
        task = await make_task(type=TaskType.SUMMARY)
        conn, ts = store_group.conn, store_group.task_store

        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.PENDING, TaskStatus.GENERATING
        )
        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.GENERATING, TaskStatus.COMPLETED, result="done"
        )

        loaded = await ts.get_task(task.task_id)
        assert loaded.status == TaskStatus.COMPLETED
        assert loaded.result == "done"

    async def test_second_claim_conflicts(self, store_group, make_task):
        """两个执行竞争同一任务，只有一个能进入 generating"""
        task = await make_task(type=TaskType.SUMMARY)
        conn, ts = store_group.conn, store_group.task_store

        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.PENDING, TaskStatus.GENERATING
        )
        with pytest.raises(TaskStatusConflictError):
            await transition_task_status(
                conn, ts, task.task_id, TaskStatus.PENDING, TaskStatus.GENERATING
            )

    async def test_lost_update_keeps_pending_writes_on_shared_conn(
        self, store_group, seed, make_task
    ):
        """条件更新落败不回滚同一连接上其他协程尚未提交的写入"""
        task = await make_task(type=TaskType.SUMMARY)
        conn, ts = store_group.conn, store_group.task_store
        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.PENDING, TaskStatus.GENERATING
        )

        # 另一协程的写入：已执行、尚未提交
        await ts.update_task_result(task.task_id, "in flight", "2026-01-01T00:00:00+00:00")

        with pytest.raises(TaskStatusConflictError):
            await transition_task_status(
                conn, ts, task.task_id, TaskStatus.PENDING, TaskStatus.GENERATING
            )
        await conn.commit()

        loaded = await ts.get_task(task.task_id)
        assert loaded.result == "in flight"

    async def test_invalid_transition_rejected_without_write(self, store_group, make_task):
        task = await make_task(type=TaskType.SUMMARY)
        with pytest.raises(InvalidTransitionError):
            await transition_task_status(
                store_group.conn,
                store_group.task_store,
                task.task_id,
                TaskStatus.PENDING,
                TaskStatus.COMPLETED,
            )
        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded.status == TaskStatus.PENDING

    async def test_conflict_errors_are_conflicts(self):
        assert issubclass(TaskStatusConflictError, ConflictError)
        assert issubclass(InvalidTransitionError, ConflictError)


class TestPartialResult:
    """累计结果写入测试"""

    async def test_partial_written_only_while_generating(self, store_group, make_task):
        task = await make_task(type=TaskType.SUMMARY)
        conn, ts = store_group.conn, store_group.task_store

        assert await save_partial_result(conn, ts, task.task_id, "too early") is False

        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.PENDING, TaskStatus.GENERATING
        )
        assert await save_partial_result(conn, ts, task.task_id, "Once") is True
        assert (await ts.get_task(task.task_id)).result == "Once"

        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.GENERATING, TaskStatus.COMPLETED, result="Once upon"
        )
        # 终态后的迟到写入不覆盖最终结果
        assert await save_partial_result(conn, ts, task.task_id, "Once up") is False
        assert (await ts.get_task(task.task_id)).result == "Once upon"


class TestPendingEdits:
    """pending 编辑测试"""

    async def test_edit_pending_task(self, store_group, seed, make_task):
        task = await make_task(type=TaskType.CONTENT, prompt="旧指令")
        updated = await update_pending_task(
            store_group.conn,
            store_group.task_store,
            task.task_id,
            prompt="新指令",
            related_docs=[RelatedDocRef(document_id=seed.doc_a_id, field_type=TaskType.SUMMARY)],
        )
        assert updated is True
        loaded = await store_group.task_store.get_task(task.task_id)
        assert loaded.prompt == "新指令"
        assert loaded.type == TaskType.CONTENT
        assert loaded.related_docs[0].document_id == seed.doc_a_id

    async def test_edit_rejected_after_pending(self, store_group, make_task):
        task = await make_task(type=TaskType.CONTENT, prompt="旧指令")
        await transition_task_status(
            store_group.conn,
            store_group.task_store,
            task.task_id,
            TaskStatus.PENDING,
            TaskStatus.GENERATING,
        )
        updated = await update_pending_task(
            store_group.conn, store_group.task_store, task.task_id, prompt="新指令"
        )
        assert updated is False
        assert (await store_group.task_store.get_task(task.task_id)).prompt == "旧指令"

    async def test_delete_task(self, store_group, seed, make_task):
        task = await make_task(type=TaskType.SUMMARY)
        assert await delete_task_record(
            store_group.conn, store_group.task_store, seed.project_id, task.task_id
        ) is True
        assert await store_group.task_store.get_task(task.task_id) is None
        assert await delete_task_record(
            store_group.conn, store_group.task_store, seed.project_id, task.task_id
        ) is False


class TestApplyResult:
    """结果写回文档测试"""

    async def test_apply_writes_field_and_history(self, store_group, seed, make_task):
        task = await make_task(type=TaskType.SUMMARY)
        conn, ts = store_group.conn, store_group.task_store
        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.PENDING, TaskStatus.GENERATING
        )
        await transition_task_status(
            conn, ts, task.task_id, TaskStatus.GENERATING, TaskStatus.COMPLETED, result="村庄摘要"
        )
        completed = await ts.get_task(task.task_id)

        doc = await apply_task_result_to_document(conn, store_group.document_store, completed)
        assert doc is not None
        assert doc.summary == "村庄摘要"
        assert doc.content == "Once there was a village."

        history = await store_group.document_store.list_history(seed.target_doc_id)
        assert len(history) == 1
        assert history[0].field_type == TaskType.SUMMARY
        assert history[0].task_id == task.task_id

    async def test_apply_requires_completed(self, store_group, make_task):
        task = await make_task(type=TaskType.SUMMARY)
        with pytest.raises(ConflictError):
            await apply_task_result_to_document(
                store_group.conn, store_group.document_store, task
            )
