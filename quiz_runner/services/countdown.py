"""
services/countdown.py

1초 간격 반복 타이머 (asyncio Task).
세션 종료 시 정확히 한 번 취소되며, 같은 세션에서 다시 시작하지 않는다.
이벤트 루프가 없는 환경(스크립트, 테스트)에서는 start()가 False를 반환하고
호출자가 tick을 직접 구동한다.
"""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CountdownTimer:
    """시험 타이머."""

    def __init__(self, interval: float = 1.0):
        self.interval = interval
        self.on_tick: Optional[Callable[[], None]] = None
        self.task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self, on_tick: Callable[[], None]) -> bool:
        """
        반복 tick 시작.

        Returns:
            실행 중인 이벤트 루프에 Task를 등록했으면 True.
        """
        if self.running:
            return True
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("실행 중인 이벤트 루프 없음, tick은 수동으로 구동됩니다.")
            return False

        self.on_tick = on_tick

        async def countdown():
            while True:
                await asyncio.sleep(self.interval)
                self.on_tick()

        self._loop = loop
        self.task = loop.create_task(countdown())
        logger.info(f"Timer start: interval={self.interval}s")
        return True

    @staticmethod
    def _on_loop(loop: Optional[asyncio.AbstractEventLoop]) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    def stop(self) -> None:
        """
        Task 취소. tick 콜백 안에서 호출해도 안전하다 (다음 await에서 종료).
        다른 스레드(세션 정리 스레드 등)에서 호출하면 취소를 타이머 루프에 예약한다.
        """
        task, loop = self.task, self._loop
        self.task = None
        self._loop = None
        if task is None or task.done():
            return
        if self._on_loop(loop):
            task.cancel()
        elif loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(task.cancel)
        else:
            return
        logger.info("Timer stopped")
