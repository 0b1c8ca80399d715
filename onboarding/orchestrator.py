"""
onboarding/orchestrator.py - 재조정 오케스트레이터

계정 하나에 대해 원하는 기능 상태로 수렴시키는 유일한 진입점입니다.

상태 머신 (reconcile 1회):
    Validating  → 계정 식별자, 기능 지원 여부, 권한 그룹, 기능 의존성 검증
                  실패 시 작업 제출 없이 FAILED
    Diffing     → ChangeSet 계산, 비어 있으면 작업 제출 없음 (no-op)
    Submitting  → DISABLE → ENABLE → UPDATE 범주별로 동기화 배리어
    Awaiting      (범주 안에서는 기능별 병렬, 최대 max_in_flight)
    Matching    → bindings가 주어지면 desired 기능의 아티팩트 검증
                  누락 시 해당 기능은 ArtifactsMissing으로 FAILED
                  (변경되지 않은 기능도 포함, no-op이라도 준비 완료가 아님)
    Aggregating → 계정 단위 결과

한 기능의 실패는 다른 기능의 제출을 막지 않으며, 결과는 항상 구조화된
ReconciliationResult로 반환됩니다 (예외로 중단하지 않음).

같은 계정에 대한 동시 재조정은 호출자가 직렬화해야 합니다.

Example:
    from onboarding import PermissionCatalog, Reconciler
    from onboarding.remote.http import HttpRemoteOperations

    reconciler = Reconciler(PermissionCatalog.default(), HttpRemoteOperations(url, token))
    result = reconciler.reconcile(account, desired, bindings)
    print(result.to_json())
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Sequence

from onboarding.artifacts.matcher import MatchResult, match
from onboarding.catalog.catalog import PermissionCatalog
from onboarding.config import ReconcileConfig
from onboarding.diff import (
    REONBOARD_FIELDS,
    ChangedField,
    ChangeKind,
    ChangeSet,
    FeatureChange,
    apply_change_set,
    diff,
)
from onboarding.exceptions import InvalidFeatureSpec, SubmissionRejected, TrackingUnavailable, ValidationError
from onboarding.remote.base import RemoteOperations
from onboarding.report import FeatureOutcome, FeatureStatus, Reason, ReconciliationResult, aggregate
from onboarding.tracker.clock import Clock
from onboarding.tracker.tracker import OperationTracker
from onboarding.tracker.types import OperationKind, OperationRequest, OperationStatus
from onboarding.types import (
    OUTPOST_DEPENDENT_FEATURES,
    PROTECTION_FEATURES,
    ArtifactBinding,
    CloudAccount,
    CloudProvider,
    Feature,
    FeatureName,
    OutpostParams,
    clean_region_name,
)

logger = logging.getLogger(__name__)

# 범주별 동기화 배리어 순서
PHASES = (ChangeKind.DISABLE, ChangeKind.ENABLE, ChangeKind.UPDATE)

# 필드별 제자리 갱신 작업 (재온보딩이 아닌 경우)
_FIELD_OPERATIONS = (
    (ChangedField.REGIONS, OperationKind.UPDATE_REGIONS),
    (ChangedField.PERMISSION_GROUPS, OperationKind.UPDATE_PERMISSION_GROUPS),
    (ChangedField.PERMISSIONS, OperationKind.PERMISSIONS_UPDATED),
)


class Reconciler:
    """재조정 오케스트레이터

    Args:
        catalog: 권한 카탈로그
        remote: 원격 작업 클라이언트
        config: 실행 설정 (기본: ReconcileConfig.from_settings())
        clock: 추적기 시계 (테스트에서 가상 시계 주입)
    """

    def __init__(
        self,
        catalog: PermissionCatalog,
        remote: RemoteOperations,
        config: ReconcileConfig | None = None,
        clock: Clock | None = None,
    ):
        self.catalog = catalog
        self.remote = remote
        self.config = config or ReconcileConfig.from_settings()
        self.clock = clock

    # =========================================================================
    # 진입점
    # =========================================================================

    def reconcile(
        self,
        account: CloudAccount,
        desired: Iterable[Feature],
        bindings: Iterable[ArtifactBinding] | None = None,
        cancel: threading.Event | None = None,
    ) -> ReconciliationResult:
        """계정을 desired 상태로 재조정

        성공적으로 반영된 변경은 account.features에 적용됩니다.

        Args:
            account: 대상 계정 (features = 마지막으로 알려진 원격 상태)
            desired: 원하는 기능 목록
            bindings: 아티팩트 바인딩 (None이면 Matching 단계 생략)
            cancel: 취소 이벤트

        Returns:
            ReconciliationResult
        """
        account_id = account.id or account.native_id
        binding_list = list(bindings) if bindings is not None else None

        # Validating
        logger.info(f"[{account.label}] 검증 시작")
        try:
            desired_features = self.validate(account, list(desired))
            change_set = diff(account.features, desired_features)
        except ValidationError as e:
            logger.error(f"[{account.label}] 검증 실패: {e}")
            return ReconciliationResult.validation_failed(account_id, e)

        # Diffing
        if change_set.is_empty:
            logger.info(f"[{account.label}] 변경 없음")
            artifacts = self._match(account, desired_features, binding_list)
            unchanged = self._readiness(account, desired_features, change_set, artifacts)
            return ReconciliationResult(
                account_id=account_id,
                overall_status=aggregate(unchanged),
                features=unchanged,
                change_set=change_set,
                artifacts=artifacts,
            )
        logger.info(f"[{account.label}] 변경 {len(change_set)}건: {', '.join(str(c) for c in change_set)}")

        # Submitting / Awaiting
        tracker = OperationTracker(self.remote, self.config, self.clock)
        outcomes: dict[FeatureName, FeatureOutcome] = {}
        for phase in PHASES:
            changes = change_set.of_kind(phase)
            if not changes:
                continue
            logger.info(f"[{account.label}] {phase.value} {len(changes)}건 실행")
            for outcome in self._run_phase(tracker, account, changes, cancel):
                outcomes[outcome.name] = outcome

        ordered = [outcomes[change.name] for change in change_set]

        # Matching
        artifacts = self._match(account, desired_features, binding_list)
        if artifacts is not None:
            self._downgrade_missing(account, ordered, artifacts)

        # Aggregating
        self._apply(account, change_set, outcomes)
        ordered.extend(self._readiness(account, desired_features, change_set, artifacts))
        status = aggregate(ordered)
        logger.info(f"[{account.label}] 재조정 완료: {status.value}")
        return ReconciliationResult(
            account_id=account_id,
            overall_status=status,
            features=ordered,
            change_set=change_set,
            artifacts=artifacts,
        )

    # =========================================================================
    # Validating
    # =========================================================================

    def validate(self, account: CloudAccount, desired: Sequence[Feature]) -> list[Feature]:
        """desired 검증 및 정규화 (validate_desired 참조)"""
        return validate_desired(self.catalog, account, desired)

    # =========================================================================
    # Submitting / Awaiting
    # =========================================================================

    def _run_phase(
        self,
        tracker: OperationTracker,
        account: CloudAccount,
        changes: list[FeatureChange],
        cancel: threading.Event | None,
    ) -> list[FeatureOutcome]:
        """한 범주의 변경을 병렬 실행 (모두 종료될 때까지 대기)"""
        if cancel is not None and cancel.is_set():
            return [_outcome(c, FeatureStatus.SKIPPED, Reason.CANCELLED) for c in changes]

        workers = min(self.config.max_in_flight, len(changes))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._run_change, tracker, account, c, cancel) for c in changes]
            return [f.result() for f in futures]

    def _run_change(
        self,
        tracker: OperationTracker,
        account: CloudAccount,
        change: FeatureChange,
        cancel: threading.Event | None,
    ) -> FeatureOutcome:
        """변경 하나를 작업 순서대로 제출/대기 (첫 비성공에서 중단)"""
        label = f"{account.label}/{change.name.value}"
        outcome = _outcome(change, FeatureStatus.SUCCEEDED)

        for request in self.requests_for(account, change):
            if cancel is not None and cancel.is_set():
                outcome.status = FeatureStatus.UNKNOWN if outcome.operations else FeatureStatus.SKIPPED
                outcome.reason = Reason.CANCELLED
                return outcome

            try:
                op = tracker.submit(request)
            except SubmissionRejected as e:
                logger.warning(f"[{label}] 제출 거절: {e}")
                return _fail(outcome, FeatureStatus.FAILED, Reason.SUBMISSION_REJECTED, str(e))
            outcome.operations.append(op)

            try:
                op = tracker.await_operation(op, cancel=cancel)
            except TrackingUnavailable as e:
                return _fail(outcome, FeatureStatus.FAILED, Reason.TRACKING_UNAVAILABLE, str(e))

            if op.cancelled:
                return _fail(outcome, FeatureStatus.UNKNOWN, Reason.CANCELLED, f"마지막 상태: {op.status.value}")
            if op.status == OperationStatus.TIMED_OUT:
                return _fail(outcome, FeatureStatus.TIMED_OUT, Reason.TIMED_OUT, op.operation_id)
            if op.status == OperationStatus.FAILED:
                return _fail(outcome, FeatureStatus.FAILED, Reason.OPERATION_FAILED, op.error)

        return outcome

    def requests_for(self, account: CloudAccount, change: FeatureChange) -> list[OperationRequest]:
        """변경 하나를 실행 순서대로의 작업 요청으로 변환"""

        def request(kind: OperationKind, feature: Feature, delete_snapshots: bool = False) -> OperationRequest:
            return OperationRequest(
                kind=kind,
                cloud=account.cloud,
                native_id=account.native_id,
                feature=feature,
                account_id=account.id,
                cloud_type=account.cloud_type,
                delete_snapshots=delete_snapshots,
            )

        if change.kind == ChangeKind.ENABLE:
            return [request(OperationKind.ENABLE_FEATURE, change.target)]
        if change.kind == ChangeKind.DISABLE:
            return [request(OperationKind.DISABLE_FEATURE, change.target, self.config.delete_snapshots)]

        assert change.feature is not None and change.current is not None
        if REONBOARD_FIELDS.intersection(change.changed_fields):
            # 재온보딩: 스냅샷은 항상 유지
            return [
                request(OperationKind.DISABLE_FEATURE, change.current, delete_snapshots=False),
                request(OperationKind.ENABLE_FEATURE, change.feature),
            ]
        return [request(kind, change.feature) for field_, kind in _FIELD_OPERATIONS if field_ in change.changed_fields]

    # =========================================================================
    # Matching / Aggregating
    # =========================================================================

    def _match(
        self, account: CloudAccount, desired: Sequence[Feature], bindings: list[ArtifactBinding] | None
    ) -> MatchResult | None:
        if bindings is None:
            return None
        requirements = self.catalog.artifact_requirements(account.cloud, desired)
        result = match(requirements, bindings)
        if result.missing:
            keys = ", ".join(f"{r.role_key}/{r.kind.value}" for r in result.missing)
            logger.warning(f"[{account.label}] 누락된 아티팩트: {keys}")
        return result

    def _downgrade_missing(self, account: CloudAccount, outcomes: list[FeatureOutcome], artifacts: MatchResult) -> None:
        """아티팩트가 누락된 기능을 ArtifactsMissing으로 실패 처리"""
        missing = {r.key for r in artifacts.missing}
        if not missing:
            return
        for outcome in outcomes:
            if not outcome.succeeded or outcome.change == ChangeKind.DISABLE:
                continue
            required = self.catalog.artifact_requirements(account.cloud, [outcome.name])
            absent = sorted(f"{r.role_key}/{r.kind.value}" for r in required if r.key in missing)
            if absent:
                _fail(outcome, FeatureStatus.FAILED, Reason.ARTIFACTS_MISSING, ", ".join(absent))

    def _readiness(
        self,
        account: CloudAccount,
        desired: Sequence[Feature],
        change_set: ChangeSet,
        artifacts: MatchResult | None,
    ) -> list[FeatureOutcome]:
        """변경되지 않은 desired 기능의 준비 상태

        누락된 아티팩트가 있을 때만 보고합니다. 누락 아티팩트가 필요한 기능은
        ArtifactsMissing, 나머지는 SUCCEEDED (change 없음).
        """
        if artifacts is None or artifacts.is_complete:
            return []
        changed = {c.name for c in change_set}
        outcomes = [
            FeatureOutcome(name=f.name, change=None, status=FeatureStatus.SUCCEEDED)
            for f in desired
            if f.name not in changed
        ]
        self._downgrade_missing(account, outcomes, artifacts)
        return outcomes

    def _apply(self, account: CloudAccount, change_set: ChangeSet, outcomes: dict[FeatureName, FeatureOutcome]) -> None:
        """원격에 반영된 변경을 account.features에 적용

        원격 프로비저닝이 성공한 변경(ArtifactsMissing 포함)과, 재온보딩 중
        비활성화만 성공한 기능(제거된 상태)을 반영합니다.
        """
        applied: list[FeatureChange] = []
        for change in change_set:
            outcome = outcomes[change.name]
            if outcome.succeeded or outcome.reason == Reason.ARTIFACTS_MISSING:
                applied.append(change)
            elif (
                change.kind == ChangeKind.UPDATE
                and outcome.operations
                and outcome.operations[0].kind == OperationKind.DISABLE_FEATURE
                and outcome.operations[0].status == OperationStatus.SUCCEEDED
            ):
                assert change.current is not None
                applied.append(FeatureChange.disable(change.current))
        account.features = tuple(apply_change_set(account.features, ChangeSet(tuple(applied))))


# =============================================================================
# Validating
# =============================================================================


def validate_desired(catalog: PermissionCatalog, account: CloudAccount, desired: Sequence[Feature]) -> list[Feature]:
    """desired 검증 및 정규화

    권한 그룹은 해석된 그룹 집합으로, AWS 리전은 정규화된 이름으로 바꿉니다.
    account.features(현재 상태)도 같은 규칙으로 정규화해 표기 차이가 변경으로
    잡히지 않도록 합니다.

    Raises:
        ValidationError: 계정 식별자, 지원하지 않는 기능, 권한 그룹, 의존성 위반
    """
    account.validate()

    seen: set[FeatureName] = set()
    normalized: list[Feature] = []
    for feature in desired:
        if not isinstance(feature, Feature):
            raise InvalidFeatureSpec(str(feature), "Feature 타입이 아닙니다")
        if feature.name in seen:
            raise InvalidFeatureSpec(feature.name.value, "desired에 중복된 기능")
        seen.add(feature.name)

        groups = catalog.normalize_groups(account.cloud, feature.name, feature.permission_groups)
        normalized.append(feature.with_permission_groups(groups).with_regions(_clean_regions(account, feature)))

    _check_dependencies(account, normalized)

    account.features = tuple(_normalize_current(catalog, account, f) for f in account.features)
    return normalized


def _clean_regions(account: CloudAccount, feature: Feature) -> tuple[str, ...]:
    return tuple(sorted({clean_region_name(account.cloud, r) for r in feature.regions}))


def _normalize_current(catalog: PermissionCatalog, account: CloudAccount, feature: Feature) -> Feature:
    """현재 기능 정규화

    원격이 카탈로그에 없는 그룹을 보고하면 그룹은 보고값 그대로 둡니다.
    """
    feature = feature.with_regions(_clean_regions(account, feature))
    try:
        groups = catalog.normalize_groups(account.cloud, feature.name, feature.permission_groups)
    except ValidationError as e:
        logger.debug(f"[{account.label}/{feature.name.value}] 현재 권한 그룹 정규화 생략: {e}")
        return feature
    return feature.with_permission_groups(groups)


def _check_dependencies(account: CloudAccount, desired: Sequence[Feature]) -> None:
    names = {f.name for f in desired}

    if account.cloud == CloudProvider.AWS and account.features:
        current_names = {f.name for f in account.features}
        if (
            FeatureName.CLOUD_DISCOVERY in current_names
            and FeatureName.CLOUD_DISCOVERY not in names
            and names & PROTECTION_FEATURES
        ):
            raise InvalidFeatureSpec(FeatureName.CLOUD_DISCOVERY.value, "보호 기능이 남아 있는 동안 제거할 수 없습니다")

    if FeatureName.CLOUD_NATIVE_ARCHIVAL_ENCRYPTION in names and FeatureName.CLOUD_NATIVE_ARCHIVAL not in names:
        raise InvalidFeatureSpec(
            FeatureName.CLOUD_NATIVE_ARCHIVAL_ENCRYPTION.value, "CLOUD_NATIVE_ARCHIVAL 기능이 필요합니다"
        )

    for feature in desired:
        if feature.name not in OUTPOST_DEPENDENT_FEATURES or FeatureName.OUTPOST in names:
            continue
        if isinstance(feature.params, OutpostParams) and feature.params.outpost_account_id:
            continue
        raise InvalidFeatureSpec(feature.name.value, "OUTPOST 기능 또는 outpost_account_id가 필요합니다")


def _outcome(change: FeatureChange, status: FeatureStatus, reason: str | None = None) -> FeatureOutcome:
    return FeatureOutcome(name=change.name, change=change.kind, status=status, reason=reason)


def _fail(outcome: FeatureOutcome, status: FeatureStatus, reason: str, detail: str | None = None) -> FeatureOutcome:
    outcome.status = status
    outcome.reason = reason
    outcome.detail = detail
    return outcome


def reconcile(
    account: CloudAccount,
    desired: Iterable[Feature],
    bindings: Iterable[ArtifactBinding] | None = None,
    *,
    catalog: PermissionCatalog,
    remote: RemoteOperations,
    config: ReconcileConfig | None = None,
    clock: Clock | None = None,
    cancel: threading.Event | None = None,
) -> ReconciliationResult:
    """Reconciler 1회 실행 단축 함수"""
    return Reconciler(catalog, remote, config, clock).reconcile(account, desired, bindings, cancel)
