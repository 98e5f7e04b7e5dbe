"""错误归一化 -- 异常到 HTTP 响应的映射

错误响应统一为 {"error": {"code": ..., "message": ...}}。
非预期异常只返回通用信息，细节仅写入日志。
"""

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from todoagent.core.exceptions import (
    StoreUnavailableError,
    TaskConflictError,
    TaskNotFoundError,
    TodoError,
    TodoValidationError,
)

log = structlog.get_logger()

# 异常类型 -> HTTP 状态码（按 MRO 顺序匹配，子类优先）
_STATUS_BY_ERROR: dict[type[TodoError], int] = {
    TodoValidationError: 400,
    TaskConflictError: 400,
    TaskNotFoundError: 404,
    StoreUnavailableError: 503,
}


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    """构造统一格式的错误响应"""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def status_for(exc: TodoError) -> int:
    """按异常类型确定状态码"""
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return 500


async def todo_error_handler(request: Request, exc: TodoError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        await log.aerror("todo_error", error_code=exc.code, error=exc.message)
        return error_response(status_code, exc.code, "Service temporarily unavailable")
    await log.awarning("todo_request_rejected", error_code=exc.code, error=exc.message)
    return error_response(status_code, exc.code, exc.message)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in errors]
    message = "Invalid request: " + ", ".join(
        f"{field or 'body'} ({err.get('msg', 'invalid')})"
        for field, err in zip(fields, errors, strict=True)
    )
    await log.awarning("request_validation_failed", fields=fields)
    return error_response(400, "VALIDATION_ERROR", message)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_exception", error_type=type(exc).__name__)
    return error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """注册异常处理器"""
    app.add_exception_handler(TodoError, todo_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
