"""TodoAgent Provider -- 自然语言任务解析能力

对外只暴露一个能力边界：resolve(text, candidates) -> Resolution | None。
核心状态机因此可以在没有任何语言模型的情况下完整测试。
"""

from typing import Protocol

# 核心组件
from .client import LiteLLMResolver

# 配置
from .config import ProviderConfig, load_provider_config

# 异常
from .exceptions import ProviderError, ProxyUnreachableError
from .fallback import FallbackResolver
from .matcher import NameMatchResolver

# 数据模型
from .models import Resolution, TaskCandidate


class TaskResolver(Protocol):
    """任务解析能力接口"""

    async def resolve(
        self,
        text: str,
        candidates: list[TaskCandidate],
    ) -> Resolution | None:
        """返回用户所指的任务；未找到或有歧义时返回 None"""
        ...


def build_resolver(config: ProviderConfig) -> FallbackResolver:
    """按配置组装解析器

    litellm 模式: LiteLLMResolver -> NameMatchResolver 降级链
    match 模式: 仅 NameMatchResolver
    """
    if config.resolver_mode == "litellm":
        return FallbackResolver(
            primary=LiteLLMResolver(
                proxy_base_url=config.proxy_base_url,
                proxy_api_key=config.proxy_api_key.get_secret_value(),
                model_alias=config.model_alias,
                timeout_s=config.timeout_s,
            ),
            fallback=NameMatchResolver(),
        )
    return FallbackResolver(primary=NameMatchResolver(), fallback=None)


__all__ = [
    "Resolution",
    "TaskCandidate",
    "TaskResolver",
    "LiteLLMResolver",
    "NameMatchResolver",
    "FallbackResolver",
    "build_resolver",
    "ProviderConfig",
    "load_provider_config",
    "ProviderError",
    "ProxyUnreachableError",
]
