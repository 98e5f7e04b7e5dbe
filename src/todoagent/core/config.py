"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、agent 标识、调度周期、提醒冷却期等可配置项。
运行期配置通过 TodoConfig 显式注入各组件构造函数，不使用进程级单例。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

# 默认值（秒）
DEFAULT_REMINDER_CHECK_INTERVAL_S = 60 * 60
DEFAULT_REMINDER_COOLDOWN_S = 24 * 60 * 60
DEFAULT_DAILY_RESET_INTERVAL_S = 24 * 60 * 60
DEFAULT_AGENT_ID = "todo-agent"


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TODOAGENT_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TODOAGENT_DB_PATH",
        str(_get_base_dir() / "sqlite" / "todoagent.db"),
    )


def get_agent_id() -> str:
    """获取当前 agent 标识"""
    return os.environ.get("TODOAGENT_AGENT_ID", DEFAULT_AGENT_ID)


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("TODOAGENT_SSE_HEARTBEAT_INTERVAL", "15")
)


class TodoConfig(BaseModel):
    """TodoAgent 运行配置

    环境变量:
        TODOAGENT_AGENT_ID: agent 标识（默认 todo-agent）
        TODOAGENT_REMINDER_CHECK_INTERVAL_S: 逾期扫描周期（默认 3600）
        TODOAGENT_REMINDER_COOLDOWN_S: 同一任务两次提醒的最小间隔（默认 86400）
        TODOAGENT_DAILY_RESET_INTERVAL_S: 每日任务重置周期（默认 86400）
    """

    agent_id: str = Field(default=DEFAULT_AGENT_ID, min_length=1, description="agent 标识")
    reminder_check_interval_s: float = Field(
        default=DEFAULT_REMINDER_CHECK_INTERVAL_S,
        gt=0,
        description="逾期提醒扫描周期（秒）",
    )
    reminder_cooldown_s: float = Field(
        default=DEFAULT_REMINDER_COOLDOWN_S,
        ge=0,
        description="提醒冷却期（秒）",
    )
    daily_reset_interval_s: float = Field(
        default=DEFAULT_DAILY_RESET_INTERVAL_S,
        gt=0,
        description="每日任务重置周期（秒）",
    )


_NUMERIC_ENV_VARS = {
    "reminder_check_interval_s": "TODOAGENT_REMINDER_CHECK_INTERVAL_S",
    "reminder_cooldown_s": "TODOAGENT_REMINDER_COOLDOWN_S",
    "daily_reset_interval_s": "TODOAGENT_DAILY_RESET_INTERVAL_S",
}


def load_todo_config() -> TodoConfig:
    """从环境变量加载 TodoConfig

    数值非法时记录 warning 并使用默认值，不阻塞启动。
    """
    kwargs: dict = {"agent_id": get_agent_id()}

    for field_name, env_var in _NUMERIC_ENV_VARS.items():
        val = os.environ.get(env_var)
        if not val:
            continue
        try:
            parsed = float(val)
        except ValueError:
            parsed = None
        if parsed is None or parsed <= 0:
            log.warning(
                "invalid_scheduler_config",
                env_var=env_var,
                value=val,
                fallback=TodoConfig.model_fields[field_name].default,
            )
            continue
        kwargs[field_name] = parsed

    return TodoConfig(**kwargs)
