"""维护 CLI 测试"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from todoagent.core.__main__ import main
from todoagent.core.models import TaskType
from todoagent.core.store import create_store_group


async def _seed(db_path: str, specs) -> list[str]:
    store_group = await create_store_group(db_path)
    try:
        return [await store_group.task_store.create_task(s) for s in specs]
    finally:
        await store_group.conn.close()


@pytest.fixture
def cli_db(tmp_path, monkeypatch) -> str:
    db_path = str(tmp_path / "cli" / "todoagent.db")
    monkeypatch.setenv("TODOAGENT_DB_PATH", db_path)
    monkeypatch.setenv("TODOAGENT_AGENT_ID", "todo-agent")
    return db_path


class TestCli:
    def test_no_command_prints_usage(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["todoagent.core"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
        assert "reset-daily" in capsys.readouterr().out

    def test_unknown_command(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["todoagent.core", "bogus"])
        with pytest.raises(SystemExit):
            main()
        assert "bogus" in capsys.readouterr().out

    def test_overdue_empty(self, cli_db, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["todoagent.core", "overdue"])
        main()
        assert "没有逾期任务" in capsys.readouterr().out

    def test_overdue_lists_tasks(self, cli_db, make_spec, monkeypatch, capsys):
        past = datetime.now(UTC) - timedelta(days=1)
        (task_id,) = asyncio.run(
            _seed(cli_db, [make_spec(name="Pay rent", due_date=past)])
        )
        monkeypatch.setattr("sys.argv", ["todoagent.core", "overdue"])

        main()

        out = capsys.readouterr().out
        assert task_id in out
        assert "Pay rent" in out
        assert "room=room-1" in out

    def test_reset_daily(self, cli_db, make_spec, monkeypatch, capsys):
        asyncio.run(_seed(cli_db, [make_spec(name="Stretch", task_type=TaskType.DAILY)]))
        monkeypatch.setattr("sys.argv", ["todoagent.core", "reset-daily"])

        main()

        out = capsys.readouterr().out
        assert "Agent: todo-agent" in out
        assert "共 0 个每日任务" in out
