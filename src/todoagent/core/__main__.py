"""CLI 入口模块 -- python -m todoagent.core <command>

支持的命令：
  reset-daily  对当前 agent 执行一次每日任务重置
  overdue      列出逾期的一次性任务
"""

import asyncio
import sys

from .config import get_agent_id, get_db_path


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m todoagent.core <command>")
        print("命令:")
        print("  reset-daily  对当前 agent 执行一次每日任务重置")
        print("  overdue      列出逾期的一次性任务")
        sys.exit(1)

    command = sys.argv[1]

    if command == "reset-daily":
        asyncio.run(reset_daily())
    elif command == "overdue":
        asyncio.run(list_overdue())
    else:
        print(f"未知命令: {command}")
        print("可用命令: reset-daily, overdue")
        sys.exit(1)


async def reset_daily() -> None:
    """执行一次每日任务重置"""
    from .store import create_store_group

    db_path = get_db_path()
    agent_id = get_agent_id()
    print(f"数据库路径: {db_path}")
    print(f"Agent: {agent_id}")

    store_group = await create_store_group(db_path)
    try:
        count = await store_group.task_store.reset_daily_tasks(agent_id)
        print(f"重置完成，共 {count} 个每日任务")
    finally:
        await store_group.conn.close()


async def list_overdue() -> None:
    """打印逾期的一次性任务"""
    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        tasks = await store_group.task_store.get_overdue_tasks()
        if not tasks:
            print("没有逾期任务")
            return
        for task in tasks:
            due = task.due_date.isoformat() if task.due_date else "-"
            print(f"{task.id}  {due}  room={task.room_id or '-'}  {task.name}")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
