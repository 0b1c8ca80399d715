"""
onboarding/tracker/types.py - 비동기 작업 타입

원격 플레인에 제출하는 작업 요청(OperationRequest)과 제출된 작업의
추적 상태(AsyncOperation)를 정의합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from onboarding.types import CloudProvider, Feature, FeatureName


class OperationStatus(str, Enum):
    """원격 작업 상태"""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.SUCCEEDED, OperationStatus.FAILED, OperationStatus.TIMED_OUT)


class OperationKind(str, Enum):
    """원격 작업 종류"""

    ENABLE_FEATURE = "ENABLE_FEATURE"
    DISABLE_FEATURE = "DISABLE_FEATURE"
    UPDATE_REGIONS = "UPDATE_REGIONS"
    UPDATE_PERMISSION_GROUPS = "UPDATE_PERMISSION_GROUPS"
    PERMISSIONS_UPDATED = "PERMISSIONS_UPDATED"


@dataclass(frozen=True)
class OperationRequest:
    """원격 플레인에 제출할 작업 요청

    Attributes:
        kind: 작업 종류
        cloud: 클라우드 제공자
        native_id: 클라우드 네이티브 계정 ID
        account_id: RSC 클라우드 계정 ID (미등록이면 None)
        feature: 대상 기능 (비활성화 시에는 이름만 의미 있음)
        cloud_type: AWS 클라우드 타입
        delete_snapshots: 비활성화 시 스냅샷 삭제 여부
    """

    kind: OperationKind
    cloud: CloudProvider
    native_id: str
    feature: Feature
    account_id: str | None = None
    cloud_type: str = "STANDARD"
    delete_snapshots: bool = False

    @property
    def feature_name(self) -> FeatureName:
        return self.feature.name

    def to_payload(self) -> dict[str, Any]:
        """HTTP 요청 본문"""
        payload: dict[str, Any] = {
            "kind": self.kind.value,
            "cloud": self.cloud.value,
            "cloud_type": self.cloud_type,
            "native_id": self.native_id,
            "account_id": self.account_id,
            "feature": self.feature.to_dict(),
        }
        if self.kind == OperationKind.DISABLE_FEATURE:
            payload["delete_snapshots"] = self.delete_snapshots
        return payload


@dataclass(frozen=True)
class RemoteStatus:
    """상태 조회 결과"""

    status: OperationStatus
    error: str | None = None


@dataclass
class AsyncOperation:
    """제출된 원격 작업

    종료 상태에 도달하면 결과에 반영된 뒤 버려집니다.

    Attributes:
        operation_id: 원격 작업 ID
        request: 제출한 요청
        submitted_at: 제출 시각 (tracker clock 기준)
        status: 마지막으로 알려진 상태
        error: 실패 시 원격 플레인이 제공한 오류
        polls: 상태 조회 횟수
        cancelled: 취소로 추적을 중단했는지 여부
    """

    operation_id: str
    request: OperationRequest
    submitted_at: float
    status: OperationStatus = OperationStatus.PENDING
    error: str | None = None
    polls: int = 0
    cancelled: bool = False
    finished_at: float | None = field(default=None)

    @property
    def kind(self) -> OperationKind:
        return self.request.kind

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "error": self.error,
        }
