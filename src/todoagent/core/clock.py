"""时间工具 -- 统一 UTC 与存储格式

所有时间戳以 UTC ISO 8601（微秒精度）字符串落库，保证字典序与时间序一致。
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """当前 UTC 时间"""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """naive 时间按 UTC 解释，aware 时间转换到 UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_db_ts(value: datetime | None) -> str | None:
    """datetime -> 落库字符串"""
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_db_ts(value: str | None) -> datetime | None:
    """落库字符串 -> datetime"""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))
