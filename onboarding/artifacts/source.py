"""
onboarding/artifacts/source.py - 아이덴티티 아티팩트 조회

호출자가 Artifact Matcher에 넘길 바인딩을 만드는 공급자들입니다.
재조정 엔진 자체는 아티팩트를 탐색하지 않습니다.

    - IamArtifactSource: IAM role / instance profile 태그(ARTIFACT_TAG_KEY)에서 role key 조회
    - StaticArtifactSource: 고정 목록 (상태 파일, 테스트)

Example:
    import boto3
    from onboarding.artifacts import IamArtifactSource

    source = IamArtifactSource(boto3.Session(profile_name="prod"))
    bindings = source.list(account)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterable

from botocore.config import Config
from botocore.exceptions import ClientError

from onboarding.config import settings
from onboarding.exceptions import ArtifactSourceError
from onboarding.types import ArtifactBinding, ArtifactKind, CloudAccount

if TYPE_CHECKING:
    import boto3

logger = logging.getLogger(__name__)

# IAM은 글로벌 서비스
IAM_REGION = "us-east-1"

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_CONNECT_TIMEOUT = 10  # 초
DEFAULT_READ_TIMEOUT = 30  # 초


def get_client(
    session: boto3.Session,
    service_name: str,
    region_name: str | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> Any:
    """adaptive retry가 적용된 boto3 client 생성"""
    config = Config(
        retries={"max_attempts": max_attempts, "mode": "adaptive"},  # pyright: ignore[reportArgumentType]
        connect_timeout=DEFAULT_CONNECT_TIMEOUT,
        read_timeout=DEFAULT_READ_TIMEOUT,
    )
    return session.client(service_name, region_name=region_name, config=config)  # type: ignore[call-overload]


class IdentityArtifactSource(ABC):
    """아이덴티티 아티팩트 공급자"""

    @abstractmethod
    def list(self, account: CloudAccount) -> list[ArtifactBinding]:
        """계정에 존재하는 아티팩트 바인딩 목록

        Raises:
            ArtifactSourceError: 조회 실패
        """


class StaticArtifactSource(IdentityArtifactSource):
    """고정 바인딩 목록"""

    def __init__(self, bindings: Iterable[ArtifactBinding] = ()):
        self.bindings = list(bindings)

    def list(self, account: CloudAccount) -> list[ArtifactBinding]:
        return list(self.bindings)


class IamArtifactSource(IdentityArtifactSource):
    """IAM role / instance profile 태그 기반 공급자

    tag_key 태그의 값이 role key가 됩니다. 태그가 없는 리소스는 무시합니다.

    Args:
        session: boto3 Session (대상 계정 자격 증명)
        tag_key: role key를 읽을 태그 키 (기본: settings.ARTIFACT_TAG_KEY)
        path_prefix: IAM 경로 필터
    """

    def __init__(self, session: boto3.Session, tag_key: str | None = None, path_prefix: str = "/"):
        self.session = session
        self.tag_key = tag_key or settings.ARTIFACT_TAG_KEY
        self.path_prefix = path_prefix

    def list(self, account: CloudAccount) -> list[ArtifactBinding]:
        iam = get_client(self.session, "iam", region_name=IAM_REGION)
        bindings = self._roles(iam, account) + self._instance_profiles(iam, account)
        logger.info(f"[{account.label}] 아티팩트 {len(bindings)}개 조회")
        return bindings

    def _roles(self, iam: Any, account: CloudAccount) -> list[ArtifactBinding]:
        bindings = []
        try:
            paginator = iam.get_paginator("list_roles")
            for page in paginator.paginate(PathPrefix=self.path_prefix):
                for role in page.get("Roles", []):
                    tags = iam.list_role_tags(RoleName=role["RoleName"]).get("Tags", [])
                    role_key = _tag_value(tags, self.tag_key)
                    if role_key:
                        bindings.append(ArtifactBinding(role_key, ArtifactKind.ROLE, role["Arn"]))
        except ClientError as e:
            raise ArtifactSourceError.from_client_error(account.label, "list_roles", e) from e
        return bindings

    def _instance_profiles(self, iam: Any, account: CloudAccount) -> list[ArtifactBinding]:
        bindings = []
        try:
            paginator = iam.get_paginator("list_instance_profiles")
            for page in paginator.paginate(PathPrefix=self.path_prefix):
                for profile in page.get("InstanceProfiles", []):
                    tags = iam.list_instance_profile_tags(InstanceProfileName=profile["InstanceProfileName"]).get(
                        "Tags", []
                    )
                    role_key = _tag_value(tags, self.tag_key)
                    if role_key:
                        bindings.append(ArtifactBinding(role_key, ArtifactKind.INSTANCE_PROFILE, profile["Arn"]))
        except ClientError as e:
            raise ArtifactSourceError.from_client_error(account.label, "list_instance_profiles", e) from e
        return bindings


def _tag_value(tags: list[dict[str, str]], key: str) -> str | None:
    for tag in tags:
        if tag.get("Key") == key:
            return tag.get("Value")
    return None
