"""
onboarding - 클라우드 계정 기능 재조정 엔진

클라우드 계정(AWS, Azure, GCP)의 기능/권한 그룹/리전을 원하는 상태로
수렴시키는 라이브러리입니다.

구성 (의존 순서):
    catalog/       권한 카탈로그 - (클라우드, 기능, 권한 그룹) → 권한 조각, 그룹 검증
    diff.py        기능 변경 계산 - current vs desired → 순서가 정해진 ChangeSet
    artifacts/     아티팩트 매칭 - role key 요구사항 vs 제공된 IAM role/instance profile
    tracker/       비동기 작업 추적 - 제출, 폴링, 타임아웃, 취소, 조회 재시도
    orchestrator   재조정 - 검증 → diff → 범주별 제출/대기 → 매칭 → 결과 집계

Usage:
    from onboarding import CloudAccount, Feature, PermissionCatalog, Reconciler
    from onboarding.remote.http import HttpRemoteOperations

    account = CloudAccount("AWS", "123456789012")
    desired = [Feature("CLOUD_NATIVE_PROTECTION", ["BASIC"], ["us-east-2"])]

    reconciler = Reconciler(PermissionCatalog.default(), HttpRemoteOperations(url, token))
    result = reconciler.reconcile(account, desired)
"""

from onboarding.artifacts import MatchResult, match
from onboarding.catalog import PermissionCatalog, PermissionFragment, YamlCatalogSource
from onboarding.config import ReconcileConfig, __version__, settings
from onboarding.diff import ChangedField, ChangeKind, ChangeSet, FeatureChange, apply_change_set, diff
from onboarding.orchestrator import Reconciler, reconcile, validate_desired
from onboarding.report import FeatureOutcome, FeatureStatus, OverallStatus, ReconciliationResult
from onboarding.types import (
    ArtifactBinding,
    ArtifactKind,
    ArtifactRequirement,
    AzureFeatureParams,
    CloudAccount,
    CloudProvider,
    Feature,
    FeatureName,
    ManagedIdentity,
    NamePattern,
    OutpostParams,
    ResourceGroup,
)

__all__ = [
    "ArtifactBinding",
    "ArtifactKind",
    "ArtifactRequirement",
    "AzureFeatureParams",
    "ChangeKind",
    "ChangeSet",
    "ChangedField",
    "CloudAccount",
    "CloudProvider",
    "Feature",
    "FeatureChange",
    "FeatureName",
    "FeatureOutcome",
    "FeatureStatus",
    "ManagedIdentity",
    "MatchResult",
    "NamePattern",
    "OutpostParams",
    "OverallStatus",
    "PermissionCatalog",
    "PermissionFragment",
    "ReconcileConfig",
    "ReconciliationResult",
    "Reconciler",
    "ResourceGroup",
    "YamlCatalogSource",
    "__version__",
    "apply_change_set",
    "diff",
    "match",
    "reconcile",
    "settings",
    "validate_desired",
]
