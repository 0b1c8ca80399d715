"""
onboarding/diff.py - 기능 변경 계산

현재 기능 상태와 원하는 기능 상태를 비교해 순서가 정해진 ChangeSet을 만듭니다.

규칙:
    - 기능은 이름으로 매칭
    - desired에만 있음 → ENABLE, current에만 있음 → DISABLE
    - 양쪽에 있음 → 필드별 비교 (권한 그룹/리전은 집합, 파라미터는 태그별)
      차이가 있으면 바뀐 필드만 담은 UPDATE, 없으면 항목 없음
    - 리전 제거도 UPDATE (재프로비저닝 없음)
    - 순서: DISABLE → ENABLE → UPDATE, 각 범주 안에서는 기능 이름순

I/O가 없는 순수 함수이며, 같은 입력에 대해 항상 같은 ChangeSet을 반환합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Iterator, Sequence

from onboarding.exceptions import InvalidFeatureSpec
from onboarding.types import AzureFeatureParams, Feature, FeatureName, OutpostParams


class ChangeKind(str, Enum):
    """변경 종류 (값의 순서가 ChangeSet 순서)"""

    DISABLE = "DISABLE"
    ENABLE = "ENABLE"
    UPDATE = "UPDATE"


_KIND_ORDER = {ChangeKind.DISABLE: 0, ChangeKind.ENABLE: 1, ChangeKind.UPDATE: 2}


class ChangedField(str, Enum):
    """UPDATE에서 바뀐 필드"""

    PERMISSION_GROUPS = "permission_groups"
    REGIONS = "regions"
    RESOURCE_GROUP = "resource_group"
    MANAGED_IDENTITY = "managed_identity"
    OUTPOST_ACCOUNT = "outpost_account"
    PERMISSIONS = "permissions"


# 재온보딩(비활성화 후 재활성화)이 필요한 필드
REONBOARD_FIELDS = frozenset({ChangedField.RESOURCE_GROUP, ChangedField.MANAGED_IDENTITY, ChangedField.OUTPOST_ACCOUNT})


@dataclass(frozen=True)
class FeatureChange:
    """ChangeSet 항목

    Attributes:
        kind: 변경 종류
        name: 기능 이름
        feature: 원하는 기능 상태 (DISABLE이면 None)
        current: 현재 기능 상태 (ENABLE이면 None)
        changed_fields: UPDATE에서 바뀐 필드 (선언 순서)
    """

    kind: ChangeKind
    name: FeatureName
    feature: Feature | None = None
    current: Feature | None = None
    changed_fields: tuple[ChangedField, ...] = ()

    @classmethod
    def enable(cls, feature: Feature) -> FeatureChange:
        return cls(ChangeKind.ENABLE, feature.name, feature=feature)

    @classmethod
    def disable(cls, current: Feature) -> FeatureChange:
        return cls(ChangeKind.DISABLE, current.name, current=current)

    @classmethod
    def update(cls, current: Feature, desired: Feature, fields: Sequence[ChangedField]) -> FeatureChange:
        return cls(ChangeKind.UPDATE, desired.name, feature=desired, current=current, changed_fields=tuple(fields))

    @property
    def target(self) -> Feature:
        """작업 요청에 실릴 기능 (DISABLE이면 현재 상태)"""
        feature = self.feature or self.current
        assert feature is not None
        return feature

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "name": self.name.value}
        if self.changed_fields:
            data["changed_fields"] = [f.value for f in self.changed_fields]
        if self.feature is not None:
            data["feature"] = self.feature.to_dict()
        return data

    def __str__(self) -> str:
        if self.changed_fields:
            return f"{self.kind.value}({self.name.value}: {', '.join(f.value for f in self.changed_fields)})"
        return f"{self.kind.value}({self.name.value})"


@dataclass(frozen=True)
class ChangeSet:
    """순서가 정해진 변경 목록"""

    changes: tuple[FeatureChange, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[FeatureChange]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def __bool__(self) -> bool:
        return bool(self.changes)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def of_kind(self, kind: ChangeKind) -> list[FeatureChange]:
        return [c for c in self.changes if c.kind == kind]

    def to_list(self) -> list[dict[str, Any]]:
        return [c.to_dict() for c in self.changes]


def _index(features: Iterable[Feature], label: str) -> dict[FeatureName, Feature]:
    result: dict[FeatureName, Feature] = {}
    for feature in features:
        if not isinstance(feature, Feature):
            raise InvalidFeatureSpec(str(feature), f"{label}: Feature 타입이 아닙니다")
        if feature.name in result:
            raise InvalidFeatureSpec(feature.name.value, f"{label}에 중복된 기능")
        result[feature.name] = feature
    return result


def changed_fields(current: Feature, desired: Feature) -> tuple[ChangedField, ...]:
    """두 기능 상태의 차이 (같은 이름 전제)"""
    fields: list[ChangedField] = []
    if current.group_set != desired.group_set:
        fields.append(ChangedField.PERMISSION_GROUPS)
    if current.region_set != desired.region_set:
        fields.append(ChangedField.REGIONS)

    if isinstance(current.params, AzureFeatureParams) or isinstance(desired.params, AzureFeatureParams):
        if getattr(current.params, "resource_group", None) != getattr(desired.params, "resource_group", None):
            fields.append(ChangedField.RESOURCE_GROUP)
        if getattr(current.params, "managed_identity", None) != getattr(desired.params, "managed_identity", None):
            fields.append(ChangedField.MANAGED_IDENTITY)
    elif isinstance(current.params, OutpostParams) or isinstance(desired.params, OutpostParams):
        if getattr(current.params, "outpost_account_id", None) != getattr(desired.params, "outpost_account_id", None):
            fields.append(ChangedField.OUTPOST_ACCOUNT)

    if current.permissions != desired.permissions:
        fields.append(ChangedField.PERMISSIONS)
    return tuple(fields)


def diff(current: Iterable[Feature], desired: Iterable[Feature]) -> ChangeSet:
    """current → desired 변경 계산

    Raises:
        InvalidFeatureSpec: 입력에 중복 기능이 있거나 Feature가 아닌 값이 있음
    """
    current_by_name = _index(current, "current")
    desired_by_name = _index(desired, "desired")

    changes: list[FeatureChange] = []
    for name, feature in current_by_name.items():
        if name not in desired_by_name:
            changes.append(FeatureChange.disable(feature))

    for name, feature in desired_by_name.items():
        existing = current_by_name.get(name)
        if existing is None:
            changes.append(FeatureChange.enable(feature))
            continue
        fields = changed_fields(existing, feature)
        if fields:
            changes.append(FeatureChange.update(existing, feature, fields))

    changes.sort(key=lambda c: (_KIND_ORDER[c.kind], c.name.value))
    return ChangeSet(tuple(changes))


def apply_change_set(current: Iterable[Feature], change_set: ChangeSet) -> list[Feature]:
    """ChangeSet을 current에 적용한 기능 목록 (이름순)"""
    state = _index(current, "current")
    for change in change_set:
        if change.kind == ChangeKind.DISABLE:
            state.pop(change.name, None)
        else:
            assert change.feature is not None
            state[change.name] = change.feature
    return [state[name] for name in sorted(state, key=lambda n: n.value)]
