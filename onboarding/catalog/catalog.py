"""
onboarding/catalog/catalog.py - 권한 카탈로그

(클라우드, 기능, 권한 그룹) → 권한 조각(PermissionFragment) 매핑과
권한 그룹 집합 검증을 담당합니다. 테이블은 시작 시 한 번 로드되어
주입되며, 이후 모든 연산은 부수 효과가 없는 순수 함수입니다.

검증 규칙 (resolve):
    1. 같은 그룹이 두 번 나오면 DuplicateGroup
    2. (클라우드, 기능)에 정의되지 않은 그룹이면 UnknownPermissionGroup
    3. 그룹 목록이 비어있지 않고, 단일 기본 그룹과도 다르며, baseline 그룹이
       빠져 있으면 MissingBaselineGroup
    4. 빈 목록은 legacy를 제외한 전체 그룹으로 해석

Example:
    from onboarding.catalog import PermissionCatalog

    catalog = PermissionCatalog.default()
    fragment = catalog.resolve("AWS", "CLOUD_NATIVE_PROTECTION", ["BASIC"])
    print(fragment.fingerprint)
    print(fragment.policy_document("CROSSACCOUNT"))
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from onboarding.catalog.source import (
    CatalogTable,
    FeatureDefinition,
    PermissionCatalogSource,
    PolicyStatement,
    load_tables,
)
from onboarding.exceptions import (
    DuplicateGroup,
    MissingBaselineGroup,
    UnknownPermissionGroup,
    UnsupportedFeature,
)
from onboarding.types import ArtifactRequirement, CloudProvider, Feature, FeatureName, RoleKey


@dataclass(frozen=True)
class PermissionFragment:
    """해석된 권한 조각 (불변)

    Attributes:
        cloud: 클라우드
        feature: 기능
        groups: 해석된 권한 그룹 (정렬)
        statements: 아티팩트별 권한 (아티팩트 이름순)
        version: 카탈로그 버전
    """

    cloud: CloudProvider
    feature: FeatureName
    groups: tuple[str, ...]
    statements: tuple[PolicyStatement, ...]
    version: str = ""

    @property
    def artifacts(self) -> tuple[str, ...]:
        return tuple(s.artifact for s in self.statements)

    @property
    def fingerprint(self) -> str:
        """권한 내용의 SHA-256 (권한 변경 신호로 사용)"""
        content = {
            "cloud": self.cloud.value,
            "feature": self.feature.value,
            "statements": [s.to_dict() for s in self.statements],
        }
        return hashlib.sha256(json.dumps(content, sort_keys=True).encode("utf-8")).hexdigest()

    def statement(self, artifact: str) -> PolicyStatement:
        for s in self.statements:
            if s.artifact == artifact:
                return s
        raise KeyError(f"{self.feature.value}에 {artifact} 아티팩트 권한이 없습니다")

    def policy_document(self, artifact: str) -> dict[str, Any]:
        """AWS IAM 인라인 정책 문서 생성

        Raises:
            KeyError: 해당 아티팩트 권한 없음
            ValueError: AWS가 아닌 클라우드
        """
        if self.cloud != CloudProvider.AWS:
            raise ValueError(f"IAM 정책 문서는 AWS 전용입니다 ({self.cloud.value})")
        statement = self.statement(artifact)
        document: dict[str, Any] = {"Version": "2012-10-17", "Statement": []}
        if statement.actions:
            document["Statement"].append(
                {"Effect": "Allow", "Action": list(statement.actions), "Resource": "*"}
            )
        return document

    def to_dict(self) -> dict[str, Any]:
        return {
            "cloud": self.cloud.value,
            "feature": self.feature.value,
            "groups": list(self.groups),
            "version": self.version,
            "fingerprint": self.fingerprint,
            "statements": [s.to_dict() for s in self.statements],
        }


class PermissionCatalog:
    """권한 카탈로그

    Args:
        tables: 클라우드별 권한 테이블 (주입, 로드 후 불변)
    """

    def __init__(self, tables: Mapping[CloudProvider, CatalogTable]):
        self._tables = dict(tables)

    @classmethod
    def from_source(cls, source: PermissionCatalogSource, clouds: Iterable[CloudProvider] | None = None) -> PermissionCatalog:
        clouds = list(clouds) if clouds is not None else list(CloudProvider)
        return cls({cloud: source.load(cloud) for cloud in clouds})

    @classmethod
    def default(cls) -> PermissionCatalog:
        """패키지 내장 테이블 기반 카탈로그"""
        return cls(load_tables())

    def version(self, cloud: CloudProvider | str) -> str:
        return self._table(CloudProvider.parse(cloud)).version

    def features(self, cloud: CloudProvider | str) -> list[FeatureName]:
        """클라우드가 지원하는 기능 목록 (이름순)"""
        return sorted(self._table(CloudProvider.parse(cloud)).features, key=lambda f: f.value)

    def supports(self, cloud: CloudProvider | str, feature: FeatureName | str) -> bool:
        table = self._tables.get(CloudProvider.parse(cloud))
        return table is not None and FeatureName.parse(feature) in table.features

    def definition(self, cloud: CloudProvider | str, feature: FeatureName | str) -> FeatureDefinition:
        """기능 정의 조회

        Raises:
            UnsupportedFeature: 클라우드에 정의되지 않은 기능
        """
        cloud = CloudProvider.parse(cloud)
        feature = FeatureName.parse(feature)
        table = self._tables.get(cloud)
        if table is None or feature not in table.features:
            raise UnsupportedFeature(cloud.value, feature.value)
        return table.features[feature]

    def normalize_groups(
        self, cloud: CloudProvider | str, feature: FeatureName | str, groups: Sequence[str]
    ) -> tuple[str, ...]:
        """그룹 목록 검증 후 해석된 그룹 집합 반환 (정렬)

        Raises:
            DuplicateGroup, UnknownPermissionGroup, MissingBaselineGroup, UnsupportedFeature
        """
        cloud = CloudProvider.parse(cloud)
        definition = self.definition(cloud, feature)
        name = definition.name.value

        seen: set[str] = set()
        for group in groups:
            if group in seen:
                raise DuplicateGroup(cloud.value, name, group)
            seen.add(group)

        for group in groups:
            if group not in definition.groups:
                raise UnknownPermissionGroup(cloud.value, name, group)

        if not groups:
            return definition.applicable_groups

        if seen != {definition.default_group} and definition.baseline and definition.baseline not in seen:
            raise MissingBaselineGroup(cloud.value, name, definition.baseline, seen)

        return tuple(sorted(seen))

    def resolve(
        self, cloud: CloudProvider | str, feature: FeatureName | str, groups: Sequence[str]
    ) -> PermissionFragment:
        """권한 그룹을 권한 조각으로 해석

        Raises:
            DuplicateGroup, UnknownPermissionGroup, MissingBaselineGroup, UnsupportedFeature
        """
        cloud = CloudProvider.parse(cloud)
        definition = self.definition(cloud, feature)
        resolved = self.normalize_groups(cloud, definition.name, groups)

        merged: dict[str, PolicyStatement] = {}
        for group in resolved:
            for statement in definition.groups[group].statements:
                current = merged.get(statement.artifact)
                merged[statement.artifact] = current.merge(statement) if current else statement

        return PermissionFragment(
            cloud=cloud,
            feature=definition.name,
            groups=resolved,
            statements=tuple(merged[a] for a in sorted(merged)),
            version=self._table(cloud).version,
        )

    def artifact_requirements(
        self, cloud: CloudProvider | str, features: Iterable[Feature | FeatureName | str]
    ) -> list[ArtifactRequirement]:
        """기능 집합이 요구하는 아티팩트 (role key, 종류) 목록

        같은 (role key, 종류)는 한 번만 포함되며, 먼저 나온 기능의 정의를 사용합니다.
        """
        cloud = CloudProvider.parse(cloud)
        requirements: dict[tuple, ArtifactRequirement] = {}
        names = sorted({f.name if isinstance(f, Feature) else FeatureName.parse(f) for f in features}, key=lambda n: n.value)
        for name in names:
            for requirement in self.definition(cloud, name).artifacts:
                requirements.setdefault(requirement.key, requirement)
        return sorted(requirements.values(), key=lambda r: (r.role_key, r.kind.value))

    def role_keys(
        self, cloud: CloudProvider | str, features: Iterable[Feature | FeatureName | str]
    ) -> list[RoleKey]:
        """기능 집합이 요구하는 role key 목록 (중복 제거, 정렬)"""
        return sorted({r.role_key for r in self.artifact_requirements(cloud, features)})

    def _table(self, cloud: CloudProvider) -> CatalogTable:
        try:
            return self._tables[cloud]
        except KeyError:
            raise UnsupportedFeature(cloud.value, "*") from None
