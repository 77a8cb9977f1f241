"""任务执行路由

POST /api/projects/{project_id}/tasks/{task_id}/execute: 执行任务并流式返回生成文本。
- 200: text/event-stream，body 为 provider 文本增量的直接拼接
- 404: 任务/目标文档不存在
- 409: 任务不在 pending
- 400: prompt 缺失或 provider 配置缺失/非法
- 500: provider 请求在流开始前失败

流开始后发生的错误无法再返回 JSON：任务记录为 failed，输出错误哨兵行后中断流。
"""

import structlog
from fastapi import APIRouter, Depends
from scribeflow.core.exceptions import ScribeflowError
from scribeflow.provider import ProviderError
from starlette.responses import StreamingResponse

from ..deps import get_task_executor
from ..errors import error_response, error_response_for
from ..services.task_executor import TaskExecutor

log = structlog.get_logger()

router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


@router.post("/api/projects/{project_id}/tasks/{task_id}/execute")
async def execute_task(
    project_id: str,
    task_id: str,
    executor: TaskExecutor = Depends(get_task_executor),
):
    """执行任务

    generating 提交、provider 请求成功之后才返回流式响应，
    流开始前的错误均以 JSON 信封返回。
    """
    try:
        execution = await executor.start(project_id, task_id)
        await execution.open()
    except (ScribeflowError, ProviderError) as e:
        log.warning(
            "task_execute_rejected",
            task_id=task_id,
            project_id=project_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return error_response_for(e)
    except Exception as e:
        # open() 失败时任务已记录为 failed
        log.exception(
            "task_execute_failed",
            task_id=task_id,
            project_id=project_id,
            error_type=type(e).__name__,
        )
        return error_response(500, str(e) or type(e).__name__)

    return StreamingResponse(
        execution.stream(),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
