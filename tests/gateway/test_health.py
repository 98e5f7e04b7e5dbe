"""健康检查测试

测试内容：
1. GET /health 返回 200 + ok
2. GET /ready 正常时返回 200 + checks 结构（WAL、调度器状态）
3. GET /ready SQLite 不可用时返回 503
4. profile=llm 时探测 LiteLLM Proxy
"""

from unittest.mock import AsyncMock

from httpx import AsyncClient
from todoagent.core.config import TodoConfig
from todoagent.gateway.services.daily_reset import DailyResetScheduler
from todoagent.provider import FallbackResolver, LiteLLMResolver


class TestHealthCheck:
    async def test_health_returns_200(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_ready_returns_200(self, client: AsyncClient):
        resp = await client.get("/ready")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["profile"] == "core"
        checks = data["checks"]
        assert checks["sqlite"] == "ok"
        assert checks["wal_mode"] is True
        assert checks["schedulers"] == {
            "reminder_scheduler": False,
            "daily_reset_scheduler": False,
        }
        assert checks["litellm_proxy"] == "skipped"

    async def test_ready_reports_running_scheduler(self, app, client: AsyncClient, store_group):
        scheduler = DailyResetScheduler(store_group.task_store, TodoConfig())
        app.state.daily_reset_scheduler = scheduler
        scheduler.start()
        try:
            resp = await client.get("/ready")
        finally:
            await scheduler.stop()
        assert resp.json()["checks"]["schedulers"]["daily_reset_scheduler"] is True

    async def test_ready_sqlite_failure(self, app, client: AsyncClient):
        app.state.store_group = None
        resp = await client.get("/ready")
        assert resp.status_code == 503
        data = resp.json()
        assert data["status"] == "not_ready"
        assert data["checks"]["sqlite"].startswith("error")

    async def test_ready_llm_profile_match_mode_skips(self, client: AsyncClient):
        resp = await client.get("/ready", params={"profile": "llm"})
        assert resp.status_code == 200
        assert resp.json()["checks"]["litellm_proxy"] == "skipped"

    async def test_ready_llm_profile_proxy_down(self, app, client: AsyncClient):
        primary = LiteLLMResolver()
        primary.health_check = AsyncMock(return_value=False)
        app.state.resolver = FallbackResolver(primary=primary, fallback=None)

        resp = await client.get("/ready", params={"profile": "full"})

        assert resp.status_code == 503
        assert resp.json()["checks"]["litellm_proxy"] == "unreachable"

    async def test_ready_llm_profile_proxy_up(self, app, client: AsyncClient):
        primary = LiteLLMResolver()
        primary.health_check = AsyncMock(return_value=True)
        app.state.resolver = FallbackResolver(primary=primary, fallback=None)

        resp = await client.get("/ready", params={"profile": "llm"})

        assert resp.status_code == 200
        assert resp.json()["checks"]["litellm_proxy"] == "ok"
