"""
onboarding/tracker - 비동기 작업 추적기

원격 작업 제출, 폴링, 타임아웃, 취소, 조회 재시도를 담당합니다.
"""

from onboarding.tracker.clock import Clock, SystemClock
from onboarding.tracker.retry import RetryConfig, RetryExhausted, RetryInterrupted, call_with_retry
from onboarding.tracker.tracker import OperationTracker
from onboarding.tracker.types import (
    AsyncOperation,
    OperationKind,
    OperationRequest,
    OperationStatus,
    RemoteStatus,
)

__all__ = [
    "AsyncOperation",
    "Clock",
    "OperationKind",
    "OperationRequest",
    "OperationStatus",
    "OperationTracker",
    "RemoteStatus",
    "RetryConfig",
    "RetryExhausted",
    "RetryInterrupted",
    "SystemClock",
    "call_with_retry",
]
