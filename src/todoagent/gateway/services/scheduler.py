"""PeriodicJob -- 固定周期后台任务

start() 之后先等待一个周期再执行第一次 run_once()，之后按固定周期循环。
stop() 幂等：设置停止事件并等待后台协程退出；正在执行的 run_once 会跑完，
但 stop() 返回后不会再开始新的一轮。
"""

import asyncio

import structlog

log = structlog.get_logger()


class PeriodicJob:
    """固定周期后台任务基类，子类实现 run_once()"""

    job_name = "periodic_job"

    def __init__(self, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._interval_s = interval_s
        self._stop_event: asyncio.Event | None = None
        self._runner: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    def start(self) -> None:
        """启动定时循环；已在运行时为 no-op"""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._runner = asyncio.create_task(self._loop(self._stop_event))
        log.info("scheduler_started", job=self.job_name, interval_s=self._interval_s)

    async def stop(self) -> None:
        """停止定时循环；重复调用或未启动时为 no-op"""
        runner = self._runner
        if runner is None:
            return
        self._runner = None
        if self._stop_event is not None:
            self._stop_event.set()
        await runner
        log.info("scheduler_stopped", job=self.job_name)

    async def run_once(self) -> int:
        """执行一轮；返回本轮处理数量"""
        raise NotImplementedError

    async def _loop(self, stop_event: asyncio.Event) -> None:
        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval_s)
                return
            except TimeoutError:
                pass
            try:
                await self.run_once()
            except Exception:
                # 单轮失败不终止调度
                log.exception("scheduler_tick_failed", job=self.job_name)
