"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、WAL 模式、调度器运行状态；
            profile=llm/full 时额外探测 LiteLLM Proxy。
"""

import structlog
from fastapi import APIRouter, Query, Request
from starlette.responses import JSONResponse
from todoagent.core.store import verify_wal_mode

log = structlog.get_logger()

router = APIRouter()

_SCHEDULERS = ("reminder_scheduler", "daily_reset_scheduler")


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    request: Request,
    profile: str | None = Query(
        default=None,
        description="core（默认）仅核心检查；llm/full 包含 LiteLLM Proxy 健康检查",
    ),
):
    """Readiness 检查

    检查项：
    1. sqlite: 数据库连通性
    2. wal_mode: WAL 是否生效（仅报告，不影响就绪状态）
    3. schedulers: 提醒/每日重置调度器是否在运行（仅报告）
    4. litellm_proxy: 根据 profile 决定是否探测 Proxy
    """
    effective_profile = profile or "core"

    checks: dict = {}
    all_ok = True

    # 1. SQLite 连通性检查
    store_group = getattr(request.app.state, "store_group", None)
    try:
        if store_group is None:
            raise RuntimeError("store not initialized")
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
        checks["wal_mode"] = await verify_wal_mode(store_group.conn)
    except Exception as e:
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. 调度器状态
    schedulers = {}
    for name in _SCHEDULERS:
        job = getattr(request.app.state, name, None)
        schedulers[name] = bool(job is not None and job.running)
    checks["schedulers"] = schedulers

    # 3. LiteLLM Proxy 健康检查
    checks["litellm_proxy"] = "skipped"
    if effective_profile in ("llm", "full"):
        resolver = getattr(request.app.state, "resolver", None)
        primary = getattr(resolver, "primary", None)
        health_check = getattr(primary, "health_check", None)
        if health_check is not None:
            try:
                if await health_check():
                    checks["litellm_proxy"] = "ok"
                else:
                    checks["litellm_proxy"] = "unreachable"
                    all_ok = False
            except Exception as e:
                log.warning("health_check_error", error=str(e))
                checks["litellm_proxy"] = "unreachable"
                all_ok = False

    status_code = 200 if all_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if all_ok else "not_ready",
            "profile": effective_profile,
            "checks": checks,
        },
    )
