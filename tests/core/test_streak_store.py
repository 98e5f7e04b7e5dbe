"""StreakStore 单元测试 -- 自增、清零、最长记录与并发原子性"""

import asyncio
from datetime import UTC, datetime, timedelta

from todoagent.core.models import TaskType

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class TestApplyStreakOutcome:
    async def test_success_increments(self, store_group, make_spec):
        task_id = await store_group.task_store.create_task(make_spec(task_type=TaskType.DAILY))
        streaks = store_group.streak_store

        first = await streaks.apply_streak_outcome(task_id, "entity-1", True, NOW)
        second = await streaks.apply_streak_outcome(
            task_id, "entity-1", True, NOW + timedelta(days=1)
        )

        assert first.current_streak == 1
        assert second.current_streak == 2
        assert second.longest_streak == 2
        assert second.last_completed_at == NOW + timedelta(days=1)

    async def test_break_resets_current_keeps_longest(self, store_group, make_spec):
        task_id = await store_group.task_store.create_task(make_spec(task_type=TaskType.DAILY))
        streaks = store_group.streak_store
        for day in range(3):
            await streaks.apply_streak_outcome(task_id, "entity-1", True, NOW + timedelta(days=day))

        broken = await streaks.apply_streak_outcome(task_id, "entity-1", False, NOW)
        assert broken.current_streak == 0
        assert broken.longest_streak == 3
        assert broken.last_completed_at == NOW + timedelta(days=2)

        again = await streaks.apply_streak_outcome(task_id, "entity-1", True, NOW)
        assert again.current_streak == 1
        assert again.longest_streak == 3

    async def test_absent_record_treated_as_zero(self, store_group, make_spec):
        # one-off 任务没有预建 streak 记录
        task_id = await store_group.task_store.create_task(make_spec())
        streaks = store_group.streak_store

        streak = await streaks.apply_streak_outcome(task_id, "entity-9", True, NOW)
        assert streak.current_streak == 1
        assert streak.longest_streak == 1

        failed = await streaks.apply_streak_outcome(task_id, "entity-8", False, NOW)
        assert failed.current_streak == 0
        assert failed.last_completed_at is None

    async def test_longest_never_below_current(self, store_group, make_spec):
        task_id = await store_group.task_store.create_task(make_spec(task_type=TaskType.DAILY))
        streaks = store_group.streak_store
        outcomes = [True, True, False, True, True, True, False, True]
        for succeeded in outcomes:
            streak = await streaks.apply_streak_outcome(task_id, "entity-1", succeeded, NOW)
            assert streak.current_streak >= 0
            assert streak.longest_streak >= streak.current_streak
        assert streak.longest_streak == 3

    async def test_concurrent_increments_not_lost(self, store_group, make_spec):
        task_id = await store_group.task_store.create_task(make_spec(task_type=TaskType.DAILY))
        streaks = store_group.streak_store

        await asyncio.gather(
            *(streaks.apply_streak_outcome(task_id, "entity-1", True, NOW) for _ in range(10))
        )

        streak = await streaks.get_streak(task_id, "entity-1")
        assert streak.current_streak == 10
        assert streak.longest_streak == 10


class TestGetOrCreate:
    async def test_creates_zero_record_once(self, store_group, make_spec):
        task_id = await store_group.task_store.create_task(make_spec())
        streaks = store_group.streak_store

        created = await streaks.get_or_create_streak(task_id, "entity-1")
        assert created.current_streak == 0

        await streaks.apply_streak_outcome(task_id, "entity-1", True, NOW)
        existing = await streaks.get_or_create_streak(task_id, "entity-1")
        assert existing.current_streak == 1


class TestRestoreStreak:
    async def test_restore_to_snapshot(self, store_group, make_spec):
        task_id = await store_group.task_store.create_task(
            make_spec(task_type=TaskType.DAILY)
        )
        streaks = store_group.streak_store
        await streaks.apply_streak_outcome(task_id, "entity-1", True, NOW)
        snapshot = await streaks.get_streak(task_id, "entity-1")
        await streaks.apply_streak_outcome(task_id, "entity-1", True, NOW + timedelta(days=1))

        await streaks.restore_streak(task_id, "entity-1", snapshot)

        restored = await streaks.get_streak(task_id, "entity-1")
        assert restored.current_streak == 1
        assert restored.longest_streak == 1
        assert restored.last_completed_at == NOW

    async def test_restore_none_deletes(self, store_group, make_spec):
        task_id = await store_group.task_store.create_task(
            make_spec(task_type=TaskType.DAILY)
        )
        streaks = store_group.streak_store
        await streaks.apply_streak_outcome(task_id, "entity-9", True, NOW)

        await streaks.restore_streak(task_id, "entity-9", None)

        assert await streaks.get_streak(task_id, "entity-9") is None
