"""
onboarding/tracker/tracker.py - 비동기 작업 추적기

원격 작업을 제출하고, 종료 상태 또는 타임아웃까지 상태를 폴링합니다.

동작:
    1. submit: in-flight 슬롯 확보 후 원격 플레인에 제출
       - 동기 거절은 SubmissionRejected로 즉시 전파 (슬롯 반환)
    2. await_operation: 상태 조회 → 지터 적용 대기 → 반복
       - 일시적 조회 오류는 지수 백오프로 재시도, 소진 시 TrackingUnavailable
       - 타임아웃 시 TIMED_OUT (원격에서는 계속 진행 중일 수 있음)
       - 취소 시 마지막 상태 그대로 cancelled=True로 반환

작업을 재제출하지 않습니다. 실패한 작업의 재시도는 다음 재조정 패스의 몫입니다.

in-flight 카운터는 한 재조정 호출 안에서 유일한 공유 가변 상태이며
lock 아래에서만 갱신됩니다.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import TYPE_CHECKING

from onboarding.config import ReconcileConfig
from onboarding.exceptions import RemoteUnavailable, SubmissionRejected, TrackingUnavailable
from onboarding.tracker.clock import Clock, SystemClock
from onboarding.tracker.retry import RetryExhausted, RetryInterrupted, call_with_retry
from onboarding.tracker.types import AsyncOperation, OperationRequest, OperationStatus

if TYPE_CHECKING:
    from onboarding.remote.base import RemoteOperations

logger = logging.getLogger(__name__)


class OperationTracker:
    """원격 작업 제출 및 폴링

    Args:
        remote: 원격 작업 클라이언트
        config: 재조정 설정 (타임아웃, 폴링 간격, 동시 작업 수, 재시도)
        clock: 시계 (기본: SystemClock)
    """

    def __init__(
        self,
        remote: RemoteOperations,
        config: ReconcileConfig | None = None,
        clock: Clock | None = None,
    ):
        self.remote = remote
        self.config = config or ReconcileConfig.from_settings()
        self.clock = clock or SystemClock()
        self._slots = threading.BoundedSemaphore(self.config.max_in_flight)
        self._lock = threading.Lock()
        self._active: set[str] = set()
        self._peak = 0

    @property
    def in_flight(self) -> int:
        """현재 추적 중인 작업 수"""
        with self._lock:
            return len(self._active)

    @property
    def peak_in_flight(self) -> int:
        """관측된 최대 동시 작업 수"""
        with self._lock:
            return self._peak

    def submit(self, request: OperationRequest) -> AsyncOperation:
        """작업 제출

        Raises:
            SubmissionRejected: 원격 플레인이 요청을 거절했거나 도달할 수 없음
        """
        label = f"{request.native_id}/{request.feature_name.value}"
        self._slots.acquire()
        try:
            operation_id = self.remote.submit(request)
        except SubmissionRejected:
            self._slots.release()
            raise
        except RemoteUnavailable as e:
            self._slots.release()
            raise SubmissionRejected(
                request.feature_name.value, error_code="RemoteUnavailable", error_message=str(e), cause=e
            ) from e
        except BaseException:
            self._slots.release()
            raise

        with self._lock:
            self._active.add(operation_id)
            self._peak = max(self._peak, len(self._active))

        logger.info(f"[{label}] {request.kind.value} 제출: {operation_id}")
        return AsyncOperation(
            operation_id=operation_id,
            request=request,
            submitted_at=self.clock.monotonic(),
        )

    def await_operation(
        self,
        op: AsyncOperation,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel: threading.Event | None = None,
    ) -> AsyncOperation:
        """작업이 종료 상태에 도달할 때까지 폴링

        Args:
            op: 제출된 작업
            timeout: 최대 대기 시간 (기본: config.timeout)
            poll_interval: 조회 간격 (기본: config.poll_interval)
            cancel: 취소 이벤트

        Returns:
            종료 상태(SUCCEEDED/FAILED/TIMED_OUT)의 작업,
            또는 취소 시 마지막으로 알려진 상태의 작업 (cancelled=True)

        Raises:
            TrackingUnavailable: 상태 조회 재시도 소진
        """
        timeout = self.config.timeout if timeout is None else timeout
        poll_interval = self.config.poll_interval if poll_interval is None else poll_interval
        label = f"{op.request.native_id}/{op.request.feature_name.value}"
        deadline = self.clock.monotonic() + timeout

        def sleep(seconds: float) -> bool:
            return self.clock.sleep(seconds, cancel)

        try:
            while True:
                if cancel is not None and cancel.is_set():
                    return self._cancelled(op, label)

                try:
                    status = call_with_retry(
                        lambda: self.remote.query(op.operation_id),
                        self.config.retry,
                        sleep=sleep,
                        label=label,
                    )
                except RetryInterrupted:
                    return self._cancelled(op, label)
                except RetryExhausted as e:
                    logger.error(f"[{label}] 작업 {op.operation_id} 추적 불가: {e.last_error}")
                    raise TrackingUnavailable(op.operation_id, e.attempts, cause=e.last_error) from e.last_error
                except Exception as e:
                    logger.error(f"[{label}] 작업 {op.operation_id} 조회 실패: {e}")
                    raise TrackingUnavailable(op.operation_id, 1, cause=e) from e

                op.polls += 1
                op.status = status.status
                op.error = status.error
                logger.debug(f"[{label}] {op.operation_id} 상태: {op.status.value} (조회 {op.polls}회)")

                if op.is_terminal:
                    op.finished_at = self.clock.monotonic()
                    if op.status == OperationStatus.SUCCEEDED:
                        logger.info(f"[{label}] {op.kind.value} 완료")
                    else:
                        logger.info(f"[{label}] {op.kind.value} {op.status.value}: {op.error}")
                    return op

                remaining = deadline - self.clock.monotonic()
                if remaining <= 0:
                    op.status = OperationStatus.TIMED_OUT
                    op.finished_at = self.clock.monotonic()
                    logger.warning(f"[{label}] {op.operation_id} 타임아웃 ({timeout:.0f}초)")
                    return op

                if not sleep(min(self._jittered(poll_interval), remaining)):
                    return self._cancelled(op, label)
        finally:
            self._release(op.operation_id)

    def _jittered(self, interval: float) -> float:
        ratio = self.config.jitter_ratio
        if ratio <= 0:
            return interval
        return interval * random.uniform(1 - ratio, 1 + ratio)

    def _cancelled(self, op: AsyncOperation, label: str) -> AsyncOperation:
        op.cancelled = True
        logger.warning(f"[{label}] {op.operation_id} 추적 취소 (마지막 상태: {op.status.value})")
        return op

    def _release(self, operation_id: str) -> None:
        with self._lock:
            if operation_id not in self._active:
                return
            self._active.discard(operation_id)
        self._slots.release()
