"""
onboarding/tracker/retry.py - 상태 조회 재시도 (지수 백오프)

원격 플레인 상태 조회가 일시적 오류(네트워크, 429, 5xx)로 실패했을 때
지수 백오프 + Full jitter로 재시도합니다. 재시도 대기는 주입된 sleep
함수로 수행되므로 테스트에서 가상 시계를 사용할 수 있습니다.

Example:
    from onboarding.tracker.retry import RetryConfig, call_with_retry

    status = call_with_retry(
        lambda: remote.query(op_id),
        RetryConfig(max_retries=3),
        sleep=clock.sleep,
        label=op_id,
    )
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, TypeVar

from onboarding.exceptions import is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """재시도 설정

    Attributes:
        max_retries: 최대 재시도 횟수 (0이면 재시도 안함)
        base_delay: 기본 대기 시간 (초)
        max_delay: 최대 대기 시간 (초)
        exponential_base: 지수 백오프 밑수
        jitter: 지터 사용 여부
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self, attempt: int) -> float:
        """재시도 대기 시간 계산

        Args:
            attempt: 현재 시도 횟수 (0부터 시작)

        Returns:
            대기 시간 (초)
        """
        delay = self.base_delay * (self.exponential_base**attempt)
        delay = min(delay, self.max_delay)

        if self.jitter:
            # Full jitter: [0, delay]
            delay = random.uniform(0, delay)

        return delay


class RetryExhausted(Exception):
    """재시도 소진 (마지막 예외를 last_error로 보관)"""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"{attempts}회 시도 실패: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class RetryInterrupted(Exception):
    """재시도 대기 중 취소됨"""

    def __init__(self, last_error: Exception):
        super().__init__(f"재시도 대기 중 취소: {last_error}")
        self.last_error = last_error


def call_with_retry(
    func: Callable[[], T],
    config: RetryConfig,
    sleep: Callable[[float], bool],
    label: str = "",
    retryable: Callable[[Exception], bool] = is_transient,
) -> T:
    """일시적 오류에 대해 지수 백오프로 재시도하며 func 호출

    Args:
        func: 호출할 함수 (인자 없음)
        config: 재시도 설정
        sleep: 대기 함수. 대기 중 취소되면 False를 반환해야 함
        label: 로깅용 식별자
        retryable: 재시도 가능 여부 판단 함수

    Returns:
        func의 반환값

    Raises:
        RetryExhausted: 재시도 가능한 오류가 max_retries를 넘어 반복됨
        RetryInterrupted: 재시도 대기 중 취소됨
        Exception: 재시도 불가능한 오류는 그대로 전파
    """
    for attempt in range(config.max_attempts):
        try:
            return func()
        except Exception as e:
            if not retryable(e):
                raise
            if attempt >= config.max_retries:
                raise RetryExhausted(attempt + 1, e) from e

            delay = config.get_delay(attempt)
            logger.debug(f"[{label}] 시도 {attempt + 1} 실패 ({e}), {delay:.2f}초 후 재시도...")
            if not sleep(delay):
                raise RetryInterrupted(e) from e

    # range가 비어있을 수 없으므로 도달하지 않음
    raise AssertionError("unreachable")
