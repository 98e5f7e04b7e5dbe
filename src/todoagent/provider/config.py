"""ProviderConfig -- 任务解析器配置加载

从环境变量加载配置，不硬编码 provider/模型名。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class ProviderConfig(BaseModel):
    """Provider 包配置 -- 从环境变量加载

    环境变量:
        LITELLM_PROXY_URL: Proxy 地址（默认 http://localhost:4000）
        LITELLM_PROXY_KEY: Proxy 访问密钥
        TODOAGENT_RESOLVER_MODE: 解析模式（litellm/match）
        TODOAGENT_RESOLVER_MODEL: 调用的模型 alias（默认 main）
        TODOAGENT_LLM_TIMEOUT_S: 调用超时（秒，默认 30）
    """

    proxy_base_url: str = Field(
        default="http://localhost:4000",
        description="LiteLLM Proxy 基础 URL",
    )
    proxy_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Proxy 访问密钥（不是 LLM provider API key）",
    )
    resolver_mode: Literal["litellm", "match"] = Field(
        default="match",
        description="任务解析模式：litellm（LLM 抽取 + 名称匹配降级）/ match（仅名称匹配）",
    )
    model_alias: str = Field(
        default="main",
        description="LLM 解析使用的模型 alias",
    )
    timeout_s: int = Field(
        default=30,
        ge=1,
        description="LLM 调用超时（秒）",
    )


def load_provider_config() -> ProviderConfig:
    """从环境变量加载 Provider 配置

    环境变量映射:
        LITELLM_PROXY_URL -> proxy_base_url (默认 "http://localhost:4000")
        LITELLM_PROXY_KEY -> proxy_api_key (默认 "")
        TODOAGENT_RESOLVER_MODE -> resolver_mode (默认 "match")
        TODOAGENT_RESOLVER_MODEL -> model_alias (默认 "main")
        TODOAGENT_LLM_TIMEOUT_S -> timeout_s (默认 30)

    Returns:
        ProviderConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("LITELLM_PROXY_URL"):
        kwargs["proxy_base_url"] = val

    if val := os.environ.get("LITELLM_PROXY_KEY"):
        kwargs["proxy_api_key"] = SecretStr(val)

    if val := os.environ.get("TODOAGENT_RESOLVER_MODE"):
        if val in ("litellm", "match"):
            kwargs["resolver_mode"] = val
        else:
            log.warning(
                "invalid_resolver_mode",
                env_var="TODOAGENT_RESOLVER_MODE",
                value=val,
                fallback="match",
            )

    if val := os.environ.get("TODOAGENT_RESOLVER_MODEL"):
        kwargs["model_alias"] = val

    if val := os.environ.get("TODOAGENT_LLM_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="TODOAGENT_LLM_TIMEOUT_S",
                value=val,
                fallback=30,
            )
            # 使用默认值，不阻塞启动

    return ProviderConfig(**kwargs)
