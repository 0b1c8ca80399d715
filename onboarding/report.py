"""
onboarding/report.py - 재조정 결과

기능별 결과(FeatureOutcome)와 계정 단위 결과(ReconciliationResult)를 정의하고
운영자에게 보여줄 구조화된 보고서로 직렬화합니다.

보고서 형식:
    {
        "account_id": "...",
        "overall_status": "SUCCEEDED" | "PARTIAL_FAILURE" | "FAILED",
        "error": null | {...},
        "features": [{"name", "status", "reason", "detail", "operations"}],
        "artifacts": {"missing": [...], "extra": [...], "unverified": [...]}
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from onboarding.artifacts.matcher import MatchResult
from onboarding.diff import ChangeKind, ChangeSet
from onboarding.exceptions import OnboardingError
from onboarding.tracker.types import AsyncOperation
from onboarding.types import FeatureName


class FeatureStatus(str, Enum):
    """기능별 결과"""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    TIMED_OUT = "TIMED_OUT"
    UNKNOWN = "UNKNOWN"


class OverallStatus(str, Enum):
    """계정 단위 결과"""

    SUCCEEDED = "SUCCEEDED"
    PARTIAL_FAILURE = "PARTIAL_FAILURE"
    FAILED = "FAILED"


class Reason:
    """기능 결과 사유 코드"""

    SUBMISSION_REJECTED = "SubmissionRejected"
    OPERATION_FAILED = "OperationFailed"
    TRACKING_UNAVAILABLE = "TrackingUnavailable"
    TIMED_OUT = "TimedOut"
    ARTIFACTS_MISSING = "ArtifactsMissing"
    CANCELLED = "Cancelled"


EXIT_CODES = {
    OverallStatus.SUCCEEDED: 0,
    OverallStatus.PARTIAL_FAILURE: 1,
    OverallStatus.FAILED: 2,
}


@dataclass
class FeatureOutcome:
    """기능 하나의 재조정 결과

    Attributes:
        name: 기능 이름
        change: 적용한 변경 종류 (준비 상태만 보고하는 변경 없는 기능은 None)
        status: 결과 상태
        reason: 실패/건너뜀 사유 코드 (Reason)
        detail: 원격 플레인 또는 예외가 제공한 상세 메시지
        operations: 제출된 작업 (제출 순서)
    """

    name: FeatureName
    change: ChangeKind | None
    status: FeatureStatus
    reason: str | None = None
    detail: str | None = None
    operations: list[AsyncOperation] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == FeatureStatus.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name.value,
            "change": self.change.value if self.change else None,
            "status": self.status.value,
        }
        if self.reason:
            data["reason"] = self.reason
        if self.detail:
            data["detail"] = self.detail
        data["operations"] = [op.to_dict() for op in self.operations]
        return data


def aggregate(outcomes: Iterable[FeatureOutcome]) -> OverallStatus:
    """기능별 결과를 계정 단위 결과로 접기

    모두 성공(또는 변경 없음) → SUCCEEDED, 일부 성공 → PARTIAL_FAILURE,
    하나도 성공하지 못함 → FAILED. TIMED_OUT/UNKNOWN/SKIPPED는 성공이 아닙니다.
    """
    outcomes = list(outcomes)
    succeeded = sum(1 for o in outcomes if o.succeeded)
    if succeeded == len(outcomes):
        return OverallStatus.SUCCEEDED
    if succeeded == 0:
        return OverallStatus.FAILED
    return OverallStatus.PARTIAL_FAILURE


@dataclass
class ReconciliationResult:
    """계정 단위 재조정 결과"""

    account_id: str
    overall_status: OverallStatus
    features: list[FeatureOutcome] = field(default_factory=list)
    change_set: ChangeSet = field(default_factory=ChangeSet)
    error: OnboardingError | None = None
    artifacts: MatchResult | None = None

    @classmethod
    def validation_failed(cls, account_id: str, error: OnboardingError) -> ReconciliationResult:
        return cls(account_id=account_id, overall_status=OverallStatus.FAILED, error=error)

    @property
    def succeeded(self) -> bool:
        return self.overall_status == OverallStatus.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.overall_status]

    def feature(self, name: FeatureName | str) -> FeatureOutcome | None:
        name = FeatureName.parse(name)
        for outcome in self.features:
            if outcome.name == name:
                return outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        artifacts: dict[str, Any] = {"missing": [], "extra": [], "unverified": []}
        if self.artifacts is not None:
            artifacts = {
                "missing": [r.to_dict() for r in self.artifacts.missing],
                "extra": [b.to_dict() for b in self.artifacts.extra],
                "unverified": [b.to_dict() for b in self.artifacts.unverified],
            }
        return {
            "account_id": self.account_id,
            "overall_status": self.overall_status.value,
            "error": self.error.to_dict() if self.error else None,
            "features": [o.to_dict() for o in self.features],
            "artifacts": artifacts,
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
