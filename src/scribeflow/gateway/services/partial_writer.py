"""PartialResultWriter -- 生成过程中的累计结果持久化

两种模式:
- await: submit() 等待写入完成后返回，写入顺序与增量顺序一致
- detach: submit() 只记录最新文本，后台最多一个在途写入，总是写最新的文本

写入是 best-effort：失败只记录日志，不影响流。
终态提交前必须调用 flush()，之后的 submit() 被忽略。
"""

import asyncio
import time

import aiosqlite
import structlog
from scribeflow.core.config import PARTIAL_WRITE_MODE_AWAIT, PARTIAL_WRITE_MODE_DETACH
from scribeflow.core.store import SqliteTaskStore, save_partial_result

log = structlog.get_logger()


class PartialResultWriter:
    """单次执行的累计结果写入器"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        task_store: SqliteTaskStore,
        task_id: str,
        mode: str = PARTIAL_WRITE_MODE_AWAIT,
        interval_ms: int = 0,
    ) -> None:
        if mode not in (PARTIAL_WRITE_MODE_AWAIT, PARTIAL_WRITE_MODE_DETACH):
            raise ValueError(f"unknown partial write mode: {mode}")
        self._conn = conn
        self._task_store = task_store
        self._task_id = task_id
        self._mode = mode
        self._interval_s = max(0, interval_ms) / 1000
        self._last_write_at: float | None = None
        self._latest: str | None = None
        self._inflight: asyncio.Task | None = None
        self._closed = False
        self.write_count = 0
        self.failed_writes = 0

    @property
    def mode(self) -> str:
        return self._mode

    async def submit(self, text: str) -> None:
        """提交最新的累计文本"""
        if self._closed or self._throttled():
            return

        if self._mode == PARTIAL_WRITE_MODE_AWAIT:
            await self._write(text)
            return

        self._latest = text
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._drain())

    async def flush(self) -> None:
        """停止接收新的写入，并等待在途写入（含已合并的最新文本）结束"""
        self._closed = True
        if self._inflight is not None:
            await self._inflight
            self._inflight = None

    def _throttled(self) -> bool:
        if self._interval_s == 0 or self._last_write_at is None:
            return False
        return time.monotonic() - self._last_write_at < self._interval_s

    async def _drain(self) -> None:
        """detach 模式的后台循环：写到没有更新的文本为止"""
        while self._latest is not None:
            text, self._latest = self._latest, None
            await self._write(text)

    async def _write(self, text: str) -> None:
        self._last_write_at = time.monotonic()
        try:
            applied = await save_partial_result(
                self._conn, self._task_store, self._task_id, text
            )
        except Exception as e:
            self.failed_writes += 1
            log.warning(
                "partial_result_write_failed",
                task_id=self._task_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        self.write_count += 1
        if not applied:
            # 任务已离开 generating，后续写入没有意义
            self._closed = True
            log.info("partial_result_write_skipped", task_id=self._task_id)
