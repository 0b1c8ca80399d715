"""
onboarding/types.py - 재조정 엔진의 핵심 타입 정의

포함 항목:
    - CloudProvider: 클라우드 제공자 열거형 (AWS, AZURE, GCP)
    - FeatureName: RSC 기능 이름 열거형 (와이어 이름 그대로 사용)
    - ArtifactKind: 아이덴티티 아티팩트 종류 (role, instance-profile)
    - 기능 파라미터 (태그드 변형): AzureFeatureParams, OutpostParams
    - Feature: 기능 + 권한 그룹 + 리전 + 파라미터
    - CloudAccount: 클라우드 계정 식별 정보 + 현재 활성화된 기능
    - ArtifactRequirement / ArtifactBinding: role key 기반 아티팩트 요구/공급

기능 파라미터의 형태는 기능 이름(태그)으로 결정됩니다. 허용되는 조합은
FEATURE_PARAM_TYPES 테이블에 정의되어 있으며, diff/match 로직은 이 태그를
기준으로 명시적으로 분기합니다.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Union

from onboarding.config import settings
from onboarding.exceptions import InvalidAccountSpec, InvalidFeatureSpec

# role key는 원격 플레인이 만든 불투명 식별자
RoleKey = str


# =============================================================================
# 열거형
# =============================================================================


class CloudProvider(str, Enum):
    """클라우드 제공자"""

    AWS = "AWS"
    AZURE = "AZURE"
    GCP = "GCP"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | CloudProvider) -> CloudProvider:
        """대소문자 구분 없이 파싱"""
        if isinstance(value, CloudProvider):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"알 수 없는 클라우드: {value!r}") from None


class FeatureName(str, Enum):
    """RSC 기능 이름

    값은 원격 플레인의 와이어 이름과 동일합니다.
    parse()는 "cloud-native-protection" 같은 소문자/케밥 표기도 허용합니다.
    """

    CLOUD_DISCOVERY = "CLOUD_DISCOVERY"
    CLOUD_NATIVE_ARCHIVAL = "CLOUD_NATIVE_ARCHIVAL"
    CLOUD_NATIVE_ARCHIVAL_ENCRYPTION = "CLOUD_NATIVE_ARCHIVAL_ENCRYPTION"
    CLOUD_NATIVE_PROTECTION = "CLOUD_NATIVE_PROTECTION"
    CLOUD_NATIVE_DYNAMODB_PROTECTION = "CLOUD_NATIVE_DYNAMODB_PROTECTION"
    CLOUD_NATIVE_S3_PROTECTION = "CLOUD_NATIVE_S3_PROTECTION"
    EXOCOMPUTE = "EXOCOMPUTE"
    RDS_PROTECTION = "RDS_PROTECTION"
    KUBERNETES_PROTECTION = "KUBERNETES_PROTECTION"
    SERVERS_AND_APPS = "SERVERS_AND_APPS"
    OUTPOST = "OUTPOST"
    DATA_SCANNING = "DATA_SCANNING"
    DSPM = "DSPM"
    CYBER_RECOVERY_DATA_SCANNING = "CYBER_RECOVERY_DATA_SCANNING"
    AZURE_SQL_DB_PROTECTION = "AZURE_SQL_DB_PROTECTION"
    AZURE_SQL_MI_PROTECTION = "AZURE_SQL_MI_PROTECTION"
    GCP_SHARED_VPC_HOST = "GCP_SHARED_VPC_HOST"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | FeatureName) -> FeatureName:
        if isinstance(value, FeatureName):
            return value
        normalized = str(value).strip().upper().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidFeatureSpec(str(value), "알 수 없는 기능 이름") from None


class ArtifactKind(str, Enum):
    """아이덴티티 아티팩트 종류"""

    ROLE = "role"
    INSTANCE_PROFILE = "instance-profile"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | ArtifactKind) -> ArtifactKind:
        if isinstance(value, ArtifactKind):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"알 수 없는 아티팩트 종류: {value!r}") from None


# 보호(protection) 계열 기능 - CLOUD_DISCOVERY 제거 가능 여부 판단에 사용
PROTECTION_FEATURES = frozenset(
    {
        FeatureName.CLOUD_NATIVE_PROTECTION,
        FeatureName.CLOUD_NATIVE_DYNAMODB_PROTECTION,
        FeatureName.CLOUD_NATIVE_S3_PROTECTION,
        FeatureName.KUBERNETES_PROTECTION,
        FeatureName.RDS_PROTECTION,
    }
)

# Outpost 기능이 필요한 기능
OUTPOST_DEPENDENT_FEATURES = frozenset(
    {
        FeatureName.DATA_SCANNING,
        FeatureName.DSPM,
        FeatureName.CYBER_RECOVERY_DATA_SCANNING,
    }
)


# =============================================================================
# 기능 파라미터 (태그드 변형)
# =============================================================================


def _freeze_tags(tags: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> tuple[tuple[str, str], ...]:
    if not tags:
        return ()
    items = tags.items() if isinstance(tags, Mapping) else tags
    return tuple(sorted((str(k), str(v)) for k, v in items))


@dataclass(frozen=True)
class ResourceGroup:
    """Azure 리소스 그룹 바인딩

    Attributes:
        name: 리소스 그룹 이름
        region: 리소스 그룹 리전
        tags: 리소스 그룹 태그 (정렬된 (키, 값) 튜플)
    """

    name: str
    region: str
    tags: tuple[tuple[str, str], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "tags", _freeze_tags(self.tags))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "region": self.region, "tags": dict(self.tags)}


@dataclass(frozen=True)
class ManagedIdentity:
    """Azure 사용자 할당 관리 ID"""

    name: str
    resource_group: str
    principal_id: str
    region: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "resource_group": self.resource_group,
            "principal_id": self.principal_id,
            "region": self.region,
        }


@dataclass(frozen=True)
class AzureFeatureParams:
    """Azure 기능 파라미터

    리소스 그룹이나 관리 ID가 바뀌면 기능을 재온보딩해야 합니다.
    """

    resource_group: ResourceGroup | None = None
    managed_identity: ManagedIdentity | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_group": self.resource_group.to_dict() if self.resource_group else None,
            "managed_identity": self.managed_identity.to_dict() if self.managed_identity else None,
        }


@dataclass(frozen=True)
class OutpostParams:
    """Outpost 계정 참조

    outpost_account_id가 None이면 같은 계정을 outpost 계정으로 사용합니다.
    """

    outpost_account_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"outpost_account_id": self.outpost_account_id}


FeatureParams = Union[AzureFeatureParams, OutpostParams]

# 기능별 허용 파라미터 형태 (없으면 파라미터 불가)
FEATURE_PARAM_TYPES: dict[FeatureName, tuple[type, ...]] = {
    FeatureName.CLOUD_NATIVE_ARCHIVAL: (AzureFeatureParams,),
    FeatureName.CLOUD_NATIVE_ARCHIVAL_ENCRYPTION: (AzureFeatureParams,),
    FeatureName.CLOUD_NATIVE_PROTECTION: (AzureFeatureParams,),
    FeatureName.EXOCOMPUTE: (AzureFeatureParams,),
    FeatureName.OUTPOST: (OutpostParams,),
    FeatureName.DATA_SCANNING: (OutpostParams,),
    FeatureName.DSPM: (OutpostParams,),
    FeatureName.CYBER_RECOVERY_DATA_SCANNING: (OutpostParams,),
}


# =============================================================================
# Feature
# =============================================================================


@dataclass(frozen=True, eq=False)
class Feature:
    """기능 명세

    권한 그룹은 선언 순서 그대로 보존되어 중복 검사에 사용되고,
    비교(==)는 권한 그룹/리전을 집합으로 취급합니다.

    Attributes:
        name: 기능 이름
        permission_groups: 권한 그룹 이름 (선언 순서)
        regions: 리전 목록
        params: 기능별 파라미터 (FEATURE_PARAM_TYPES 참조)
        permissions: 권한 갱신 신호 (보통 카탈로그 fingerprint)
    """

    name: FeatureName
    permission_groups: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    params: FeatureParams | None = None
    permissions: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "name", FeatureName.parse(self.name))
        if isinstance(self.permission_groups, str):
            raise InvalidFeatureSpec(self.name.value, "permission_groups는 목록이어야 합니다")
        if isinstance(self.regions, str):
            raise InvalidFeatureSpec(self.name.value, "regions는 목록이어야 합니다")
        object.__setattr__(self, "permission_groups", tuple(str(g).strip().upper() for g in self.permission_groups))
        object.__setattr__(self, "regions", tuple(str(r).strip() for r in self.regions))

        if any(not r for r in self.regions):
            raise InvalidFeatureSpec(self.name.value, "빈 리전 이름")
        if any(not g for g in self.permission_groups):
            raise InvalidFeatureSpec(self.name.value, "빈 권한 그룹 이름")

        if self.params is not None:
            allowed = FEATURE_PARAM_TYPES.get(self.name, ())
            if not isinstance(self.params, allowed):
                raise InvalidFeatureSpec(
                    self.name.value,
                    f"허용되지 않는 파라미터 형태: {type(self.params).__name__}",
                )

    @property
    def group_set(self) -> frozenset[str]:
        return frozenset(self.permission_groups)

    @property
    def region_set(self) -> frozenset[str]:
        return frozenset(self.regions)

    def with_permission_groups(self, groups: Iterable[str]) -> Feature:
        return Feature(self.name, tuple(groups), self.regions, self.params, self.permissions)

    def with_regions(self, regions: Iterable[str]) -> Feature:
        return Feature(self.name, self.permission_groups, tuple(regions), self.params, self.permissions)

    def _key(self) -> tuple:
        return (self.name, self.group_set, self.region_set, self.params, self.permissions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Feature):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name.value,
            "permission_groups": sorted(self.group_set),
            "regions": sorted(self.region_set),
        }
        if self.params is not None:
            data["params"] = self.params.to_dict()
        if self.permissions is not None:
            data["permissions"] = self.permissions
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Feature:
        """딕셔너리(YAML 블록)에서 Feature 생성

        Raises:
            InvalidFeatureSpec: 필수 키 누락 또는 잘못된 값
        """
        if "name" not in data:
            raise InvalidFeatureSpec("<unknown>", "name 필드 누락")
        name = FeatureName.parse(data["name"])
        params = _params_from_dict(name, data)
        return cls(
            name=name,
            permission_groups=tuple(data.get("permission_groups") or ()),
            regions=tuple(data.get("regions") or ()),
            params=params,
            permissions=data.get("permissions"),
        )


def _params_from_dict(name: FeatureName, data: Mapping[str, Any]) -> FeatureParams | None:
    """기능 태그에 따라 파라미터 블록 파싱

    최상위 키와 to_dict()가 만드는 params 블록 모두 허용합니다.
    """
    nested = data.get("params")
    if isinstance(nested, Mapping):
        data = {**data, **nested}
    allowed = FEATURE_PARAM_TYPES.get(name, ())
    if AzureFeatureParams in allowed:
        rg = data.get("resource_group")
        mi = data.get("managed_identity")
        if not rg and not mi:
            return None
        try:
            return AzureFeatureParams(
                resource_group=ResourceGroup(rg["name"], rg["region"], rg.get("tags")) if rg else None,
                managed_identity=ManagedIdentity(
                    mi["name"], mi["resource_group"], mi["principal_id"], mi["region"]
                )
                if mi
                else None,
            )
        except (KeyError, TypeError) as e:
            raise InvalidFeatureSpec(name.value, f"잘못된 Azure 파라미터: {e}", cause=e) from e
    if OutpostParams in allowed:
        if "outpost_account_id" not in data:
            return None
        return OutpostParams(outpost_account_id=data["outpost_account_id"])

    for key in ("resource_group", "managed_identity", "outpost_account_id"):
        if key in data:
            raise InvalidFeatureSpec(name.value, f"허용되지 않는 파라미터: {key}")
    return None


def clean_region_name(cloud: CloudProvider, region: str) -> str:
    """리전 이름 정규화 (AWS: 소문자 + 하이픈 구분)"""
    if cloud == CloudProvider.AWS:
        return region.strip().lower().replace("_", "-")
    return region.strip()


# =============================================================================
# Cloud Account
# =============================================================================

_AWS_ACCOUNT_RE = re.compile(r"^\d{12}$")
_GCP_PROJECT_RE = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")


@dataclass
class CloudAccount:
    """클라우드 계정 정보

    재조정 1회 동안 오케스트레이터가 소유하는 작업 상태입니다.
    영속 상태는 원격 플레인에만 있습니다.

    Attributes:
        cloud: 클라우드 제공자
        native_id: AWS 계정 ID / Azure 구독 ID / GCP 프로젝트 ID
        id: RSC 클라우드 계정 ID (UUID, 미등록이면 None)
        name: 계정 이름
        cloud_type: AWS 클라우드 타입 (STANDARD, CHINA, GOV)
        features: 원격 플레인에 현재 활성화된 기능 (마지막으로 알려진 상태)
    """

    cloud: CloudProvider
    native_id: str
    id: str | None = None
    name: str | None = None
    cloud_type: str = "STANDARD"
    features: tuple[Feature, ...] = field(default_factory=tuple)

    def __post_init__(self):
        self.cloud = CloudProvider.parse(self.cloud)
        self.native_id = str(self.native_id).strip()
        self.cloud_type = self.cloud_type.upper()
        self.features = tuple(self.features)

    @property
    def label(self) -> str:
        """로깅용 식별자"""
        return f"{self.cloud.value}:{self.name or self.native_id}"

    def feature(self, name: FeatureName | str) -> Feature | None:
        name = FeatureName.parse(name)
        for feature in self.features:
            if feature.name == name:
                return feature
        return None

    def validate(self) -> None:
        """계정 식별자 검증

        Raises:
            InvalidAccountSpec: 클라우드별 식별자 형식 위반
        """
        if self.cloud == CloudProvider.AWS:
            if not _AWS_ACCOUNT_RE.match(self.native_id):
                raise InvalidAccountSpec(self.cloud.value, self.native_id, "AWS 계정 ID는 12자리 숫자여야 합니다")
            if self.cloud_type not in settings.VALID_CLOUD_TYPES:
                raise InvalidAccountSpec(self.cloud.value, self.native_id, f"알 수 없는 클라우드 타입: {self.cloud_type}")
        elif self.cloud == CloudProvider.AZURE:
            try:
                uuid.UUID(self.native_id)
            except ValueError:
                raise InvalidAccountSpec(self.cloud.value, self.native_id, "Azure 구독 ID는 UUID여야 합니다") from None
        elif self.cloud == CloudProvider.GCP:
            if not _GCP_PROJECT_RE.match(self.native_id):
                raise InvalidAccountSpec(self.cloud.value, self.native_id, "잘못된 GCP 프로젝트 ID")

        if self.id is not None:
            try:
                uuid.UUID(self.id)
            except ValueError:
                raise InvalidAccountSpec(self.cloud.value, self.native_id, f"RSC 계정 ID는 UUID여야 합니다: {self.id}") from None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cloud": self.cloud.value,
            "native_id": self.native_id,
            "id": self.id,
            "name": self.name,
            "cloud_type": self.cloud_type,
            "features": [f.to_dict() for f in self.features],
        }


# =============================================================================
# Artifacts
# =============================================================================


@dataclass(frozen=True)
class NamePattern:
    """아티팩트 이름 패턴 (prefix/suffix)

    ARN 식별자는 마지막 '/' 뒤의 리소스 이름에 패턴을 적용합니다.
    """

    prefix: str | None = None
    suffix: str | None = None

    def matches(self, identifier: str) -> bool:
        name = artifact_name(identifier)
        if self.prefix and not name.startswith(self.prefix):
            return False
        if self.suffix and not name.endswith(self.suffix):
            return False
        return True

    def __str__(self) -> str:
        return f"{self.prefix or ''}*{self.suffix or ''}"


def artifact_name(identifier: str) -> str:
    """ARN이면 리소스 이름, 아니면 식별자 그대로 반환"""
    if identifier.startswith("arn:"):
        return identifier.rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return identifier


@dataclass(frozen=True)
class ArtifactRequirement:
    """role key 단위 아티팩트 요구사항

    Attributes:
        role_key: 원격 플레인이 부여한 role key
        kind: 아티팩트 종류
        pattern: 기대하는 이름 패턴 (없으면 존재 여부만 확인)
        feature: 이 요구사항을 만든 기능 (보고용)
    """

    role_key: RoleKey
    kind: ArtifactKind
    pattern: NamePattern | None = None
    feature: FeatureName | None = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "kind", ArtifactKind.parse(self.kind))

    @property
    def key(self) -> tuple[RoleKey, ArtifactKind]:
        return (self.role_key, self.kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role_key": self.role_key,
            "kind": self.kind.value,
            "pattern": str(self.pattern) if self.pattern else None,
        }


@dataclass(frozen=True)
class ArtifactBinding:
    """호출자가 제공한 구체적 아티팩트 (예: IAM role ARN)"""

    role_key: RoleKey
    kind: ArtifactKind
    identifier: str

    def __post_init__(self):
        object.__setattr__(self, "kind", ArtifactKind.parse(self.kind))

    @property
    def key(self) -> tuple[RoleKey, ArtifactKind]:
        return (self.role_key, self.kind)

    @property
    def name(self) -> str:
        return artifact_name(self.identifier)

    def to_dict(self) -> dict[str, Any]:
        return {"role_key": self.role_key, "kind": self.kind.value, "identifier": self.identifier}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ArtifactBinding:
        return cls(role_key=data["role_key"], kind=data["kind"], identifier=data["identifier"])
