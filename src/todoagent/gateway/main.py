"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭、解析器组装、提醒与每日重置调度器启停、路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from todoagent.core.config import get_db_path, load_todo_config
from todoagent.core.store import create_store_group
from todoagent.provider import build_resolver, load_provider_config

from .errors import register_error_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import actions, health, points, stream, tags, todos
from .services.daily_reset import DailyResetScheduler
from .services.reminder_service import ReminderScheduler
from .services.scheduler import PeriodicJob
from .services.sse_hub import SSEHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化存储与调度器，关闭时停止调度器并清理连接"""
    todo_config = load_todo_config()
    app.state.todo_config = todo_config

    # 启动：初始化 Store
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group
    schedulers: list[PeriodicJob] = []
    try:
        # 初始化 SSEHub（同时作为提醒的 NotificationSink）
        sse_hub = SSEHub()
        app.state.sse_hub = sse_hub

        # 任务解析器（根据配置选择模式）
        provider_config = load_provider_config()
        app.state.provider_config = provider_config
        app.state.resolver = build_resolver(provider_config)
        log.info(
            "resolver_initialized",
            mode=provider_config.resolver_mode,
            proxy_url=provider_config.proxy_base_url,
        )

        # 调度器
        reminder_scheduler = ReminderScheduler(store_group.task_store, sse_hub, todo_config)
        daily_reset_scheduler = DailyResetScheduler(store_group.task_store, todo_config)
        for scheduler in (reminder_scheduler, daily_reset_scheduler):
            scheduler.start()
            schedulers.append(scheduler)
        app.state.reminder_scheduler = reminder_scheduler
        app.state.daily_reset_scheduler = daily_reset_scheduler

        yield
    finally:
        # 关闭：先停调度器，再关闭数据库连接
        for scheduler in schedulers:
            await scheduler.stop()
        await store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TodoAgent Gateway",
        version="0.1.0",
        description="TodoAgent 待办/积分/提醒 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire()

    register_error_handlers(app)

    # 注册路由
    app.include_router(todos.router, tags=["todos"])
    app.include_router(points.router, tags=["points"])
    app.include_router(tags.router, tags=["tags"])
    app.include_router(actions.router, tags=["actions"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
