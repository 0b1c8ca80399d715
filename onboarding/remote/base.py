"""
onboarding/remote/base.py - 원격 작업 클라이언트 인터페이스

재조정 엔진은 원격 컨트롤 플레인의 실제 프로토콜을 알지 못하며,
이 인터페이스를 통해서만 작업을 제출하고 상태를 조회합니다.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from onboarding.tracker.types import OperationRequest, OperationStatus, RemoteStatus

# 원격 task chain 상태 → 추적기 상태
REMOTE_STATE_MAP: dict[str, OperationStatus] = {
    "QUEUED": OperationStatus.PENDING,
    "READY": OperationStatus.PENDING,
    "PENDING": OperationStatus.PENDING,
    "RUNNING": OperationStatus.RUNNING,
    "CANCELING": OperationStatus.RUNNING,
    "UNDOING": OperationStatus.RUNNING,
    "SUCCEEDED": OperationStatus.SUCCEEDED,
    "FAILED": OperationStatus.FAILED,
    "CANCELED": OperationStatus.FAILED,
}


def normalize_state(state: str) -> OperationStatus:
    """원격 상태 문자열 정규화

    Raises:
        ValueError: 알 수 없는 상태
    """
    key = str(state).strip().upper()
    if key not in REMOTE_STATE_MAP:
        raise ValueError(f"알 수 없는 원격 작업 상태: {state!r}")
    return REMOTE_STATE_MAP[key]


class RemoteOperations(ABC):
    """원격 작업 클라이언트"""

    @abstractmethod
    def submit(self, request: OperationRequest) -> str:
        """작업 제출

        Returns:
            원격 작업 ID

        Raises:
            SubmissionRejected: 동기 거절
            RemoteUnavailable: 일시적 전송 실패
        """

    @abstractmethod
    def query(self, operation_id: str) -> RemoteStatus:
        """작업 상태 조회

        Raises:
            RemoteUnavailable: 일시적 전송 실패 (추적기가 재시도)
        """
