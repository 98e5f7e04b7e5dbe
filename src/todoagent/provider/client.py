"""LiteLLMResolver -- 通过 LiteLLM Proxy 让模型抽取用户所指的任务

通过 litellm.acompletion() 调用 Proxy，模型按约定返回 XML：
<response><taskId/><taskName/><isFound/></response>
"""

import re
import time

import httpx
import structlog
from litellm import acompletion

from .exceptions import ProviderError, ProxyUnreachableError
from .models import Resolution, TaskCandidate

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# 连接类异常类型集合（触发 ProxyUnreachableError，进而触发 FallbackResolver 降级）
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
)

EXTRACT_COMPLETION_TEMPLATE = """# Task: Extract Task Completion Information

## User Message
{text}

## Available Tasks
{available_tasks}

## Instructions
Parse the user's message to identify which task they're marking as completed.
Match against the list of available tasks by name or description.
If multiple tasks have similar names, choose the closest match.

Return an XML object with:
<response>
  <taskId>ID of the task being completed, or 'null' if not found</taskId>
  <taskName>Name of the task being completed, or 'null' if not found</taskName>
  <isFound>'true' or 'false' indicating if a matching task was found</isFound>
</response>

If no matching task was found:
<response>
  <taskId>null</taskId>
  <taskName>null</taskName>
  <isFound>false</isFound>
</response>
"""

_XML_FIELD_RE = re.compile(r"<(taskId|taskName|isFound)>\s*(.*?)\s*</\1>", re.DOTALL)


def _is_connection_error(e: Exception) -> bool:
    """判断异常是否为连接类错误（Proxy 不可达）"""
    if isinstance(e, _CONNECTION_ERROR_TYPES):
        return True
    # LiteLLM 的 APIConnectionError 也属于连接类错误
    error_name = type(e).__name__
    return error_name in ("APIConnectionError", "APITimeoutError")


def format_candidates(candidates: list[TaskCandidate]) -> str:
    """候选任务格式化为 prompt 文本"""
    blocks = []
    for task in candidates:
        tags = ", ".join(task.tags) if task.tags else "none"
        blocks.append(
            f"ID: {task.id}\n"
            f"Name: {task.name}\n"
            f"Description: {task.description or task.name}\n"
            f"Tags: {tags}\n"
        )
    return "\n---\n".join(blocks)


def parse_completion_xml(content: str) -> dict[str, str] | None:
    """解析模型返回的 XML 字段；缺少 isFound 视为解析失败"""
    fields = {name: value for name, value in _XML_FIELD_RE.findall(content)}
    if "isFound" not in fields:
        return None
    return {
        "taskId": "" if fields.get("taskId", "null") == "null" else fields.get("taskId", ""),
        "taskName": "" if fields.get("taskName", "null") == "null" else fields.get("taskName", ""),
        "isFound": fields["isFound"].strip("'\"").lower(),
    }


class LiteLLMResolver:
    """LiteLLM Proxy 任务解析器"""

    name = "litellm"

    def __init__(
        self,
        proxy_base_url: str = "http://localhost:4000",
        proxy_api_key: str = "",
        model_alias: str = "main",
        timeout_s: int = 30,
    ) -> None:
        """初始化 LiteLLM Proxy 解析器

        Args:
            proxy_base_url: Proxy 基础 URL
            proxy_api_key: Proxy 访问密钥（LITELLM_PROXY_KEY）
            model_alias: 调用的模型 alias
            timeout_s: 请求超时（秒）
        """
        self._proxy_base_url = proxy_base_url.rstrip("/")
        self._proxy_api_key = proxy_api_key
        self._model_alias = model_alias
        self._timeout_s = timeout_s

    async def resolve(
        self,
        text: str,
        candidates: list[TaskCandidate],
    ) -> Resolution | None:
        """让模型从候选任务中选出用户所指的任务

        Returns:
            Resolution；模型判定未找到、返回无法解析或 ID 不在候选中时返回 None

        Raises:
            ProxyUnreachableError: Proxy 连接失败或超时
            ProviderError: Proxy 返回错误（如模型不可用、配额耗尽）
        """
        if not candidates:
            return None

        prompt = EXTRACT_COMPLETION_TEMPLATE.format(
            text=text,
            available_tasks=format_candidates(candidates),
        )
        start_time = time.monotonic()

        try:
            response = await acompletion(
                model=self._model_alias,
                messages=[{"role": "user", "content": prompt}],
                api_base=self._proxy_base_url,
                api_key=self._proxy_api_key or "no-key",
                temperature=0,
                timeout=self._timeout_s,
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            log.error(
                "litellm_resolve_failed",
                model_alias=self._model_alias,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=duration_ms,
            )
            # 区分连接类错误与业务错误
            if _is_connection_error(e):
                raise ProxyUnreachableError(
                    proxy_url=self._proxy_base_url,
                    original_error=e,
                ) from e
            raise ProviderError(
                message=f"LLM 调用失败: {e}",
                recoverable=True,
            ) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        parsed = parse_completion_xml(content)
        if parsed is None:
            log.warning(
                "litellm_resolve_unparseable",
                model_alias=self._model_alias,
                duration_ms=duration_ms,
            )
            return None

        if parsed["isFound"] != "true":
            log.info("litellm_resolve_not_found", duration_ms=duration_ms)
            return None

        by_id = {c.id: c for c in candidates}
        candidate = by_id.get(parsed["taskId"])
        if candidate is None:
            log.warning(
                "litellm_resolve_unknown_task",
                task_id=parsed["taskId"],
                task_name=parsed["taskName"],
            )
            return None

        log.info(
            "litellm_resolve_completed",
            task_id=candidate.id,
            model_alias=self._model_alias,
            duration_ms=duration_ms,
        )
        return Resolution(
            task_id=candidate.id,
            task_name=candidate.name,
            confidence=1.0,
            resolver=self.name,
        )

    async def health_check(self) -> bool:
        """检查 LiteLLM Proxy 可达性

        发送 GET {proxy_base_url}/health/liveliness 请求。
        此方法不抛出异常，所有异常内部捕获并返回 False。
        """
        url = f"{self._proxy_base_url}/health/liveliness"
        try:
            async with httpx.AsyncClient() as http_client:
                resp = await http_client.get(url, timeout=HEALTH_CHECK_TIMEOUT_S)
                return resp.status_code == 200
        except Exception as e:
            log.debug("health_check_failed", url=url, error=str(e))
            return False
