"""TraceMiddleware -- 为待办操作绑定 trace_id

从 /api/todos/{todo_id}[/...] 路径中提取 todo_id，生成 trace-<todo_id>，
贯穿该待办相关的所有日志。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# ULID 长度
_ID_LENGTH = 26


def extract_todo_id(path: str) -> str | None:
    """从路径中提取 todo_id；不是待办路径时返回 None"""
    parts = [p for p in path.split("/") if p]
    for i, part in enumerate(parts):
        if part == "todos" and i + 1 < len(parts):
            candidate = parts[i + 1]
            if len(candidate) == _ID_LENGTH:
                return candidate
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """待办级追踪中间件 -- 为待办操作绑定 trace_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        todo_id = extract_todo_id(request.url.path)
        if todo_id:
            structlog.contextvars.bind_contextvars(trace_id=f"trace-{todo_id}")

        return await call_next(request)
