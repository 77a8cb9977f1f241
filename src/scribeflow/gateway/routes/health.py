"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性与默认 provider 配置状态。
"""

import structlog
from fastapi import APIRouter, Request
from scribeflow.core.exceptions import ConfigError
from scribeflow.provider import ProviderConfig, load_default_provider_settings
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查

    检查项：
    1. sqlite: 数据库连通性（失败时返回 503）
    2. default_provider: 环境变量默认 provider 配置
       （项目可以自带配置，此项只报告状态，不影响 ready）
    """
    checks = {}
    all_ok = True

    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e), error_type=type(e).__name__)
        checks["sqlite"] = f"error: {e}"
        all_ok = False

    settings = load_default_provider_settings()
    if settings is None:
        checks["default_provider"] = "not_configured"
    else:
        try:
            ProviderConfig.from_settings(settings)
            checks["default_provider"] = "ok"
        except ConfigError as e:
            checks["default_provider"] = f"error: {e.message}"

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
        },
    )
