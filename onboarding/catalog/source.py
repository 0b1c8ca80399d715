"""onboarding/catalog/source.py - 권한 카탈로그 테이블 로더.

YAML 테이블을 읽어 불변 CatalogTable로 변환합니다.

테이블 디렉토리 선택 우선순위:
    1. YamlCatalogSource(directory) 파라미터.
    2. 환경변수 (ONBOARD_CATALOG_DIR).
    3. 패키지 내장 테이블 (catalog/data).
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml  # type: ignore[import-untyped]

from onboarding.config import ENV_PREFIX, settings
from onboarding.exceptions import CatalogLoadError, InvalidFeatureSpec
from onboarding.types import ArtifactKind, ArtifactRequirement, CloudProvider, FeatureName, NamePattern

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"

ENV_CATALOG_DIR = f"{ENV_PREFIX}CATALOG_DIR"


# =============================================================================
# 테이블 타입
# =============================================================================


@dataclass(frozen=True)
class PolicyStatement:
    """아티팩트 하나에 부여되는 권한

    Attributes:
        artifact: 권한이 부여되는 아티팩트 (role key 또는 SUBSCRIPTION/PROJECT)
        actions: 허용 액션 (정렬, 중복 제거)
        managed_policies: 관리형 정책 ARN (정렬, 중복 제거)
    """

    artifact: str
    actions: tuple[str, ...] = ()
    managed_policies: tuple[str, ...] = ()

    def merge(self, other: PolicyStatement) -> PolicyStatement:
        return PolicyStatement(
            artifact=self.artifact,
            actions=tuple(sorted(set(self.actions) | set(other.actions))),
            managed_policies=tuple(sorted(set(self.managed_policies) | set(other.managed_policies))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "artifact": self.artifact,
            "actions": list(self.actions),
            "managed_policies": list(self.managed_policies),
        }


@dataclass(frozen=True)
class GroupDefinition:
    """권한 그룹 정의 (legacy 그룹은 권한 없이 허용만 됨)"""

    name: str
    statements: tuple[PolicyStatement, ...] = ()
    legacy: bool = False


@dataclass(frozen=True)
class FeatureDefinition:
    """기능 하나의 카탈로그 정의"""

    name: FeatureName
    groups: Mapping[str, GroupDefinition]
    baseline: str | None = None
    default: str | None = None
    artifacts: tuple[ArtifactRequirement, ...] = ()

    @property
    def default_group(self) -> str | None:
        return self.default or self.baseline

    @property
    def applicable_groups(self) -> tuple[str, ...]:
        """legacy가 아닌 그룹 (빈 그룹 목록의 해석)"""
        return tuple(sorted(name for name, group in self.groups.items() if not group.legacy))


@dataclass(frozen=True)
class CatalogTable:
    """클라우드 하나의 권한 테이블 (로드 후 불변)"""

    cloud: CloudProvider
    version: str
    features: Mapping[FeatureName, FeatureDefinition]


# =============================================================================
# 로더
# =============================================================================


class PermissionCatalogSource(ABC):
    """권한 테이블 공급자"""

    @abstractmethod
    def load(self, cloud: CloudProvider) -> CatalogTable:
        """클라우드 테이블 로드

        Raises:
            CatalogLoadError: 테이블이 없거나 형식이 잘못됨
        """


class YamlCatalogSource(PermissionCatalogSource):
    """YAML 파일 기반 테이블 공급자 ({directory}/{cloud}.yaml)"""

    def __init__(self, directory: str | Path | None = None):
        if directory is None:
            directory = os.environ.get(ENV_CATALOG_DIR) or DATA_DIR
        self.directory = Path(directory)

    def load(self, cloud: CloudProvider) -> CatalogTable:
        cloud = CloudProvider.parse(cloud)
        path = self.directory / f"{cloud.value.lower()}.yaml"
        if not path.exists():
            raise CatalogLoadError(str(path), "파일 없음")

        try:
            with path.open(encoding="utf-8") as f:
                raw: dict[str, Any] = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CatalogLoadError(str(path), "읽기 실패", cause=e) from e

        table = parse_table(raw, source=str(path))
        if table.cloud != cloud:
            raise CatalogLoadError(str(path), f"클라우드 불일치: {table.cloud.value} != {cloud.value}")
        if settings.CATALOG_VERSION and table.version != settings.CATALOG_VERSION:
            raise CatalogLoadError(
                str(path), f"버전 불일치: {table.version} (기대: {settings.CATALOG_VERSION})"
            )

        logger.debug(f"권한 카탈로그 로드: {path} (version {table.version}, 기능 {len(table.features)}개)")
        return table


def parse_table(raw: Mapping[str, Any], source: str = "<memory>") -> CatalogTable:
    """YAML 딕셔너리를 CatalogTable로 변환

    Raises:
        CatalogLoadError: 필수 키 누락, 알 수 없는 기능/아티팩트 종류, 잘못된 그룹 참조
    """
    try:
        cloud = CloudProvider.parse(raw["cloud"])
        version = str(raw.get("version", ""))
        features: dict[FeatureName, FeatureDefinition] = {}
        for feature_key, data in (raw.get("features") or {}).items():
            feature = FeatureName.parse(feature_key)
            features[feature] = _parse_feature(feature, data or {})
    except (KeyError, TypeError, ValueError, InvalidFeatureSpec) as e:
        raise CatalogLoadError(source, f"잘못된 테이블 형식: {e}", cause=e) from e

    for definition in features.values():
        for ref in (definition.baseline, definition.default):
            if ref is not None and ref not in definition.groups:
                raise CatalogLoadError(source, f"{definition.name.value}: 정의되지 않은 그룹 참조 {ref}")

    return CatalogTable(cloud=cloud, version=version, features=MappingProxyType(features))


def _parse_feature(name: FeatureName, data: Mapping[str, Any]) -> FeatureDefinition:
    groups: dict[str, GroupDefinition] = {}
    for group_name, group_data in (data.get("groups") or {}).items():
        group_data = group_data or {}
        statements = tuple(
            PolicyStatement(
                artifact=str(p["artifact"]),
                actions=tuple(sorted(set(p.get("actions") or ()))),
                managed_policies=tuple(sorted(set(p.get("managed") or ()))),
            )
            for p in group_data.get("policies") or ()
        )
        groups[str(group_name)] = GroupDefinition(
            name=str(group_name),
            statements=statements,
            legacy=bool(group_data.get("legacy", False)),
        )

    artifacts = []
    for a in data.get("artifacts") or ():
        pattern = a.get("name_pattern")
        artifacts.append(
            ArtifactRequirement(
                role_key=str(a["role_key"]),
                kind=ArtifactKind.parse(a["kind"]),
                pattern=NamePattern(pattern.get("prefix"), pattern.get("suffix")) if pattern else None,
                feature=name,
            )
        )

    return FeatureDefinition(
        name=name,
        groups=MappingProxyType(groups),
        baseline=data.get("baseline"),
        default=data.get("default"),
        artifacts=tuple(artifacts),
    )


@lru_cache(maxsize=4)
def load_tables(directory: str | None = None) -> Mapping[CloudProvider, CatalogTable]:
    """모든 클라우드 테이블 로드 (디렉토리별 캐시)"""
    source = YamlCatalogSource(directory)
    return MappingProxyType({cloud: source.load(cloud) for cloud in CloudProvider})
