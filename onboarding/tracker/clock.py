"""
onboarding/tracker/clock.py - 추적기용 시계

폴링 대기와 재시도 백오프는 Clock을 통해서만 일어납니다.
테스트에서는 가상 시계를 주입해 실제 지연 없이 타임아웃과 취소를 검증합니다.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """시계 인터페이스"""

    @abstractmethod
    def monotonic(self) -> float:
        """단조 증가 시각 (초)"""

    @abstractmethod
    def sleep(self, seconds: float, cancel: threading.Event | None = None) -> bool:
        """seconds 만큼 대기

        Returns:
            끝까지 대기했으면 True, cancel이 설정되어 중단됐으면 False
        """


class SystemClock(Clock):
    """실제 시계 (cancel 이벤트로 대기 중단 가능)"""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: threading.Event | None = None) -> bool:
        if cancel is None:
            time.sleep(max(seconds, 0.0))
            return True
        return not cancel.wait(max(seconds, 0.0))
