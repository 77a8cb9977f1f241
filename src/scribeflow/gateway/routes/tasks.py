"""任务管理路由

POST   /api/projects/{project_id}/tasks: 创建 pending 任务
GET    /api/projects/{project_id}/tasks: 任务列表，支持 doc_id/status 筛选
GET    /api/projects/{project_id}/tasks/{task_id}: 任务详情（含当前累计结果）
PUT    /api/projects/{project_id}/tasks/{task_id}: 编辑任务（仅 pending）
DELETE /api/projects/{project_id}/tasks/{task_id}: 删除任务
POST   /api/projects/{project_id}/tasks/{task_id}/apply: 将已完成的结果写入目标文档

成功响应格式：{"success": true, "data": ...}
"""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from scribeflow.core.exceptions import ConflictError, NotFoundError, ScribeflowError
from scribeflow.core.models import RelatedDocRef, Task, TaskStatus, TaskType
from scribeflow.core.store import (
    StoreGroup,
    apply_task_result_to_document,
    create_task_record,
    delete_task_record,
    update_pending_task,
)
from starlette.responses import JSONResponse
from ulid import ULID

from ..deps import get_store_group
from ..errors import error_response_for

log = structlog.get_logger()

router = APIRouter()


class CreateTaskRequest(BaseModel):
    """创建任务请求体"""

    doc_id: str = Field(description="目标文档 ID")
    type: TaskType = Field(description="任务类型")
    prompt: str = Field(default="", description="用户指令")
    related_docs: list[RelatedDocRef] = Field(default_factory=list)


class UpdateTaskRequest(BaseModel):
    """编辑任务请求体（未提供的字段保持不变）"""

    type: TaskType | None = None
    prompt: str | None = None
    related_docs: list[RelatedDocRef] | None = None


def _task_data(task: Task) -> dict:
    return task.model_dump(mode="json", by_alias=True)


def _ok(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


async def _require_task(store_group: StoreGroup, project_id: str, task_id: str) -> Task:
    task = await store_group.task_store.find_task(project_id, task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")
    return task


@router.post("/api/projects/{project_id}/tasks")
async def create_task(
    project_id: str,
    body: CreateTaskRequest,
    store_group=Depends(get_store_group),
):
    """创建 pending 任务，目标文档必须属于该项目"""
    try:
        project = await store_group.project_store.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        doc = await store_group.document_store.get_document(body.doc_id)
        if doc is None or doc.project_id != project_id:
            raise NotFoundError(f"Document {body.doc_id} not found")

        now = datetime.now(UTC)
        task = Task(
            task_id=str(ULID()),
            project_id=project_id,
            doc_id=body.doc_id,
            type=body.type,
            prompt=body.prompt,
            related_docs=body.related_docs,
            created_at=now,
            updated_at=now,
        )
        await create_task_record(store_group.conn, store_group.task_store, task)
    except ScribeflowError as e:
        return error_response_for(e)

    log.info("task_created", task_id=task.task_id, project_id=project_id, task_type=task.type.value)
    return _ok(_task_data(task), status_code=201)


@router.get("/api/projects/{project_id}/tasks")
async def list_tasks(
    project_id: str,
    doc_id: str | None = Query(default=None, description="按目标文档筛选"),
    status: TaskStatus | None = Query(default=None, description="按状态筛选"),
    store_group=Depends(get_store_group),
):
    """查询项目下的任务列表，按 created_at 倒序"""
    tasks = await store_group.task_store.list_tasks(
        project_id=project_id,
        doc_id=doc_id,
        status=status.value if status else None,
    )
    return _ok([_task_data(t) for t in tasks])


@router.get("/api/projects/{project_id}/tasks/{task_id}")
async def get_task(
    project_id: str,
    task_id: str,
    store_group=Depends(get_store_group),
):
    """查询任务详情，生成中可用于读取当前进度"""
    try:
        task = await _require_task(store_group, project_id, task_id)
    except NotFoundError as e:
        return error_response_for(e)
    return _ok(_task_data(task))


@router.put("/api/projects/{project_id}/tasks/{task_id}")
async def update_task(
    project_id: str,
    task_id: str,
    body: UpdateTaskRequest,
    store_group=Depends(get_store_group),
):
    """编辑任务 type/prompt/related_docs，任务离开 pending 后返回 409"""
    try:
        task = await _require_task(store_group, project_id, task_id)
        updated = await update_pending_task(
            store_group.conn,
            store_group.task_store,
            task_id,
            type=body.type.value if body.type else None,
            prompt=body.prompt,
            related_docs=body.related_docs,
        )
        if not updated:
            current = await store_group.task_store.get_task(task_id)
            status = current.status if current else task.status
            raise ConflictError(f"task is already {status.value}")
        task = await _require_task(store_group, project_id, task_id)
    except ScribeflowError as e:
        return error_response_for(e)
    return _ok(_task_data(task))


@router.delete("/api/projects/{project_id}/tasks/{task_id}")
async def delete_task(
    project_id: str,
    task_id: str,
    store_group=Depends(get_store_group),
):
    """删除任务"""
    deleted = await delete_task_record(
        store_group.conn, store_group.task_store, project_id, task_id
    )
    if not deleted:
        return error_response_for(NotFoundError(f"Task {task_id} not found"))
    log.info("task_deleted", task_id=task_id, project_id=project_id)
    return _ok({"task_id": task_id})


@router.post("/api/projects/{project_id}/tasks/{task_id}/apply")
async def apply_task_result(
    project_id: str,
    task_id: str,
    store_group=Depends(get_store_group),
):
    """将已完成任务的结果写入目标文档（字段由任务类型决定），并追加历史记录"""
    try:
        task = await _require_task(store_group, project_id, task_id)
        doc = await apply_task_result_to_document(
            store_group.conn, store_group.document_store, task
        )
        if doc is None:
            raise NotFoundError(f"Document {task.doc_id} not found")
    except ScribeflowError as e:
        return error_response_for(e)

    log.info(
        "task_result_applied",
        task_id=task_id,
        doc_id=task.doc_id,
        field_type=task.type.value,
    )
    return _ok(doc.model_dump(mode="json"))
