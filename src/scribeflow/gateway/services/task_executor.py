"""TaskExecutor -- 任务执行编排

执行流程:
1. 前置检查（任务存在且属于项目、状态为 pending、provider 配置可解析、prompt 组装）
   -- 全部在任何 store 写入之前完成
2. 提交 pending -> generating
3. 发起 provider 流式请求
4. 逐个增量：先写给调用方，再提交累计结果写入
5. 正常结束提交 completed；任何失败（含调用方断开）提交 failed 并保留已生成内容

终态写入在 anyio shield 中完成，调用方断开导致的取消不会打断它。
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, aclosing

import anyio
import structlog
from pydantic import BaseModel, Field
from scribeflow.core.config import (
    PARTIAL_WRITE_MODE_AWAIT,
    PROMPT_PREVIEW_LENGTH,
    STREAM_ERROR_SENTINEL_PREFIX,
    get_partial_write_interval_ms,
    get_partial_write_mode,
    get_stream_error_sentinel_enabled,
)
from scribeflow.core.exceptions import ConflictError, NotFoundError
from scribeflow.core.models import Task, TaskStatus, build_failure_result
from scribeflow.core.store import StoreGroup, TaskStatusConflictError, transition_task_status
from scribeflow.provider import (
    ChatCompletionClient,
    ProviderConfig,
    ProviderError,
    ProviderStream,
    StreamDecoder,
    resolve_provider_config,
)

from .partial_writer import PartialResultWriter
from .prompt_assembler import AssembledPrompt, PromptAssembler

log = structlog.get_logger()

CLIENT_DISCONNECTED_MESSAGE = "client disconnected"


class ExecutorSettings(BaseModel):
    """执行器行为配置"""

    partial_write_mode: str = Field(default=PARTIAL_WRITE_MODE_AWAIT)
    partial_write_interval_ms: int = Field(default=0, ge=0)
    error_sentinel: bool = Field(default=True, description="流中断前输出错误哨兵行")

    @classmethod
    def from_env(cls) -> "ExecutorSettings":
        return cls(
            partial_write_mode=get_partial_write_mode(),
            partial_write_interval_ms=get_partial_write_interval_ms(),
            error_sentinel=get_stream_error_sentinel_enabled(),
        )


def format_error_sentinel(message: str) -> bytes:
    """调用方流末尾的错误哨兵行"""
    return f"\n{STREAM_ERROR_SENTINEL_PREFIX} {message}\n".encode()


def _error_message(error: BaseException) -> str:
    if isinstance(error, ProviderError):
        return error.message
    return str(error) or type(error).__name__


class TaskExecution:
    """一次已进入 generating 的任务执行

    由 TaskExecutor.start() 创建，调用方负责 open() 之后消费 stream()。
    """

    def __init__(
        self,
        stores: StoreGroup,
        client: ChatCompletionClient,
        task: Task,
        prompt: AssembledPrompt,
        config: ProviderConfig,
        settings: ExecutorSettings,
    ) -> None:
        self._stores = stores
        self._client = client
        self._task = task
        self._prompt = prompt
        self._config = config
        self._settings = settings
        self._exit_stack = AsyncExitStack()
        self._provider_stream: ProviderStream | None = None
        self._decoder = StreamDecoder()
        self._writer = PartialResultWriter(
            stores.conn,
            stores.task_store,
            task.task_id,
            mode=settings.partial_write_mode,
            interval_ms=settings.partial_write_interval_ms,
        )
        self._finished = False
        self._started_at = time.monotonic()

    @property
    def task_id(self) -> str:
        return self._task.task_id

    @property
    def finished(self) -> bool:
        return self._finished

    async def open(self) -> None:
        """发起 provider 请求

        任何异常都先把任务记录为 failed 再向上抛出。

        Raises:
            ProviderError: 请求失败
        """
        if self._provider_stream is not None:
            return
        try:
            self._provider_stream = await self._exit_stack.enter_async_context(
                self._client.open_stream(self._prompt.system, self._prompt.turns, self._config)
            )
        except ProviderError as e:
            await self._abort_open(e.message, type(e).__name__)
            raise
        except asyncio.CancelledError:
            await self._abort_open(CLIENT_DISCONNECTED_MESSAGE, "ClientDisconnected")
            raise
        except Exception as e:
            log.exception("provider_open_failed", task_id=self.task_id)
            await self._abort_open(_error_message(e), type(e).__name__)
            raise

    async def _abort_open(self, message: str, error_type: str) -> None:
        await self._fail(message, error_type=error_type)
        with anyio.CancelScope(shield=True):
            await self._exit_stack.aclose()

    async def stream(self) -> AsyncIterator[bytes]:
        """调用方字节流

        每个增量先 yield 给调用方，再提交累计结果写入。
        失败时先提交 failed，再（可选）输出错误哨兵行，最后重新抛出异常中断流。
        """
        await self.open()
        try:
            deltas = self._decoder.iter_deltas(self._provider_stream.aiter_bytes())
            async with aclosing(deltas):
                async for delta in deltas:
                    yield delta.encode("utf-8")
                    await self._writer.submit(self._decoder.text)
        except (GeneratorExit, asyncio.CancelledError):
            await self._fail(CLIENT_DISCONNECTED_MESSAGE, error_type="ClientDisconnected")
            raise
        except Exception as e:
            message = _error_message(e)
            await self._fail(message, error_type=type(e).__name__)
            if self._settings.error_sentinel:
                yield format_error_sentinel(message)
            raise
        else:
            await self._complete()
        finally:
            with anyio.CancelScope(shield=True):
                await self._exit_stack.aclose()

    async def run(self) -> Task:
        """非流式执行到终态，返回最终任务

        provider 失败已记录在任务中，不再向上抛出。
        """
        try:
            async for _ in self.stream():
                pass
        except ProviderError as e:
            log.info(
                "task_execution_failed_recorded",
                task_id=self.task_id,
                error=e.message,
            )
        task = await self._stores.task_store.get_task(self.task_id)
        if task is None:
            raise NotFoundError(f"Task {self.task_id} not found")
        return task

    async def _complete(self) -> None:
        result = self._decoder.result
        with anyio.CancelScope(shield=True):
            await self._writer.flush()
            try:
                await transition_task_status(
                    self._stores.conn,
                    self._stores.task_store,
                    self.task_id,
                    TaskStatus.GENERATING,
                    TaskStatus.COMPLETED,
                    result=result.content,
                )
            except TaskStatusConflictError:
                log.warning("task_terminal_commit_conflict", task_id=self.task_id)
            finally:
                self._finished = True
        log.info(
            "task_execution_completed",
            task_id=self.task_id,
            chunk_count=result.chunk_count,
            malformed_lines=result.malformed_lines,
            finish_reason=result.finish_reason,
            result_length=len(result.content),
            partial_writes=self._writer.write_count,
            duration_ms=int((time.monotonic() - self._started_at) * 1000),
        )

    async def _fail(self, message: str, error_type: str) -> None:
        if self._finished:
            return
        partial = self._decoder.text
        with anyio.CancelScope(shield=True):
            await self._writer.flush()
            try:
                await transition_task_status(
                    self._stores.conn,
                    self._stores.task_store,
                    self.task_id,
                    TaskStatus.GENERATING,
                    TaskStatus.FAILED,
                    result=build_failure_result(partial, message),
                )
            except TaskStatusConflictError:
                log.warning("task_terminal_commit_conflict", task_id=self.task_id)
            finally:
                self._finished = True
        log.error(
            "task_execution_failed",
            task_id=self.task_id,
            error=message,
            error_type=error_type,
            partial_length=len(partial),
            duration_ms=int((time.monotonic() - self._started_at) * 1000),
        )


class TaskExecutor:
    """任务执行器（每个应用一个实例，不保存 provider 配置）"""

    def __init__(
        self,
        store_group: StoreGroup,
        provider_client: ChatCompletionClient,
        settings: ExecutorSettings | None = None,
    ) -> None:
        self._stores = store_group
        self._client = provider_client
        self._settings = settings or ExecutorSettings.from_env()
        self._assembler = PromptAssembler(store_group.document_store)

    async def start(self, project_id: str, task_id: str) -> TaskExecution:
        """完成前置检查并提交 pending -> generating

        Raises:
            NotFoundError: 任务不存在/不属于该项目，或目标文档不存在
            ConflictError: 任务不在 pending（并发执行中落败同样如此）
            ConfigError: provider 配置缺失或非法
            PreconditionError: 必填 prompt 缺失
        """
        task = await self._stores.task_store.find_task(project_id, task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        if task.status != TaskStatus.PENDING:
            raise ConflictError(f"task is already {task.status.value}")

        project_settings = await self._stores.project_store.find_project_provider_config(
            project_id
        )
        config = resolve_provider_config(project_settings)
        prompt = await self._assembler.assemble(task)

        await transition_task_status(
            self._stores.conn,
            self._stores.task_store,
            task_id,
            TaskStatus.PENDING,
            TaskStatus.GENERATING,
        )
        log.info(
            "task_execution_started",
            task_id=task_id,
            project_id=project_id,
            task_type=task.type.value,
            model=config.model,
            turn_count=len(prompt.turns),
            prompt_preview=task.prompt[:PROMPT_PREVIEW_LENGTH],
            partial_write_mode=self._settings.partial_write_mode,
        )
        return TaskExecution(
            self._stores,
            self._client,
            task.model_copy(update={"status": TaskStatus.GENERATING}),
            prompt,
            config,
            self._settings,
        )

    async def execute_to_completion(self, project_id: str, task_id: str) -> Task:
        """非流式执行（CLI/测试使用），返回终态任务"""
        execution = await self.start(project_id, task_id)
        return await execution.run()
