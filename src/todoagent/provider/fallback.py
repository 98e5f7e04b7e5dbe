"""FallbackResolver -- 解析器降级管理

惰性回切策略：每次调用时先尝试 primary，失败则切换到 fallback。
不维护显式的"降级状态"标记。
primary 正常返回 None（未找到/有歧义）是有效结果，不触发降级。
"""

import structlog

from .exceptions import ProviderError
from .models import Resolution, TaskCandidate

log = structlog.get_logger()


class FallbackResolver:
    """解析器降级管理器

    降级链: LiteLLMResolver -> NameMatchResolver
    """

    def __init__(
        self,
        primary,
        fallback=None,
    ) -> None:
        """初始化降级管理器

        Args:
            primary: 主解析器（LiteLLMResolver 或 NameMatchResolver）
            fallback: 降级解析器（默认 NameMatchResolver），None 表示无降级
        """
        self._primary = primary
        self._fallback = fallback

    @property
    def primary(self):
        return self._primary

    async def resolve(
        self,
        text: str,
        candidates: list[TaskCandidate],
    ) -> Resolution | None:
        """带降级的任务解析

        Returns:
            - primary 成功: 原样返回（含 None）
            - fallback 成功: is_fallback=True, fallback_reason=<错误描述>
            - 全部失败: 抛出 ProviderError

        Raises:
            ProviderError: primary 和 fallback 均失败
        """
        primary_error: Exception | None = None
        try:
            return await self._primary.resolve(text, candidates)
        except Exception as e:
            primary_error = e
            log.warning(
                "primary_resolver_failed_attempting_fallback",
                error=str(e),
            )

        if self._fallback is None:
            raise ProviderError(
                f"Primary 解析失败且无 fallback 配置: {primary_error}",
                recoverable=False,
            ) from primary_error

        try:
            result = await self._fallback.resolve(text, candidates)
        except Exception as fallback_error:
            log.error(
                "both_primary_and_fallback_resolvers_failed",
                primary_error=str(primary_error),
                fallback_error=str(fallback_error),
            )
            raise ProviderError(
                f"Primary 和 Fallback 均失败。Primary: {primary_error}; Fallback: {fallback_error}",
                recoverable=False,
            ) from fallback_error

        log.info("resolver_fallback_activated", fallback_reason=str(primary_error))
        if result is None:
            return None
        return result.model_copy(
            update={
                "is_fallback": True,
                "fallback_reason": f"Primary 失败: {primary_error}",
            }
        )
