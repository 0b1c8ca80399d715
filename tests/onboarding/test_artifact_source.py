"""
tests/onboarding/test_artifact_source.py - 아티팩트 공급자 테스트

IAM 공급자는 moto로 모킹한 IAM에서 role / instance profile 태그를 읽습니다.
"""

import json
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from onboarding.artifacts import IamArtifactSource, StaticArtifactSource
from onboarding.artifacts.source import get_client
from onboarding.exceptions import ArtifactSourceError
from onboarding.types import ArtifactBinding, ArtifactKind

ASSUME_ROLE_POLICY = json.dumps(
    {
        "Version": "2012-10-17",
        "Statement": [{"Effect": "Allow", "Principal": {"Service": "ec2.amazonaws.com"}, "Action": "sts:AssumeRole"}],
    }
)

TAG_KEY = "rsc:role-key"


@pytest.fixture
def iam_session():
    with mock_aws():
        session = boto3.Session(region_name="us-east-1")
        iam = session.client("iam")

        iam.create_role(
            RoleName="rubrik-crossaccount",
            AssumeRolePolicyDocument=ASSUME_ROLE_POLICY,
            Tags=[{"Key": TAG_KEY, "Value": "CROSSACCOUNT"}],
        )
        iam.create_role(
            RoleName="rubrik-exocompute-worker",
            AssumeRolePolicyDocument=ASSUME_ROLE_POLICY,
            Tags=[{"Key": TAG_KEY, "Value": "EXOCOMPUTE_EKS_WORKERNODE"}],
        )
        iam.create_role(
            RoleName="unrelated",
            AssumeRolePolicyDocument=ASSUME_ROLE_POLICY,
            Tags=[{"Key": "team", "Value": "ops"}],
        )
        iam.create_instance_profile(
            InstanceProfileName="rubrik-exocompute-worker-profile",
            Tags=[{"Key": TAG_KEY, "Value": "EXOCOMPUTE_EKS_WORKERNODE"}],
        )
        iam.create_instance_profile(InstanceProfileName="untagged-profile")

        yield session


class TestGetClient:
    def test_adaptive_retry(self):
        """adaptive retry 설정이 적용됨"""
        session = MagicMock()

        get_client(session, "iam", region_name="us-east-1", max_attempts=7)

        _, kwargs = session.client.call_args
        assert kwargs["region_name"] == "us-east-1"
        assert kwargs["config"].retries == {"max_attempts": 7, "mode": "adaptive"}


class TestStaticArtifactSource:
    def test_returns_copy(self, aws_account):
        binding = ArtifactBinding("CROSSACCOUNT", "role", "arn:aws:iam::123456789012:role/rubrik")
        source = StaticArtifactSource([binding])

        result = source.list(aws_account)
        result.clear()

        assert source.list(aws_account) == [binding]


class TestIamArtifactSource:
    """IAM 공급자 테스트 (moto)"""

    def test_tagged_resources(self, iam_session, aws_account):
        """태그가 있는 role/instance profile만 바인딩"""
        bindings = IamArtifactSource(iam_session, tag_key=TAG_KEY).list(aws_account)

        by_kind = {(b.role_key, b.kind): b for b in bindings}
        assert set(by_kind) == {
            ("CROSSACCOUNT", ArtifactKind.ROLE),
            ("EXOCOMPUTE_EKS_WORKERNODE", ArtifactKind.ROLE),
            ("EXOCOMPUTE_EKS_WORKERNODE", ArtifactKind.INSTANCE_PROFILE),
        }
        assert by_kind[("CROSSACCOUNT", ArtifactKind.ROLE)].name == "rubrik-crossaccount"
        assert by_kind[("EXOCOMPUTE_EKS_WORKERNODE", ArtifactKind.INSTANCE_PROFILE)].identifier.startswith("arn:aws:iam::")

    def test_other_tag_key(self, iam_session, aws_account):
        assert IamArtifactSource(iam_session, tag_key="team").list(aws_account) == [
            ArtifactBinding("ops", ArtifactKind.ROLE, "arn:aws:iam::123456789012:role/unrelated")
        ]

    def test_client_error_wrapped(self, aws_account, monkeypatch):
        """ClientError는 ArtifactSourceError로 변환"""
        iam = MagicMock()
        iam.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListRoles"
        )
        monkeypatch.setattr("onboarding.artifacts.source.get_client", lambda *args, **kwargs: iam)

        with pytest.raises(ArtifactSourceError) as exc_info:
            IamArtifactSource(MagicMock(), tag_key=TAG_KEY).list(aws_account)

        assert exc_info.value.error_code == "AccessDenied"
        assert exc_info.value.operation == "list_roles"
