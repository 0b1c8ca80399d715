"""
tests/onboarding/test_matcher.py - 아티팩트 매칭 테스트
"""

from onboarding.artifacts import match
from onboarding.types import ArtifactBinding, ArtifactKind, ArtifactRequirement, NamePattern

PREFIX = NamePattern(prefix="rubrik-exocompute-")


def _role(role_key: str, name: str) -> ArtifactBinding:
    return ArtifactBinding(role_key, ArtifactKind.ROLE, f"arn:aws:iam::123456789012:role/{name}")


class TestMatch:
    """match 테스트"""

    def test_all_matched(self):
        requirements = [
            ArtifactRequirement("CROSSACCOUNT", "role"),
            ArtifactRequirement("EXOCOMPUTE_EKS_MASTERNODE", "role", PREFIX),
        ]
        bindings = [_role("CROSSACCOUNT", "rubrik-cross"), _role("EXOCOMPUTE_EKS_MASTERNODE", "rubrik-exocompute-master")]

        result = match(requirements, bindings)

        assert result.is_complete
        assert result.matched_count == 2
        assert result.missing == []
        assert result.extra == []

    def test_missing(self):
        """바인딩이 없는 요구사항은 missing"""
        requirement = ArtifactRequirement("EXOCOMPUTE_EKS_WORKERNODE", "instance-profile", PREFIX)

        result = match([requirement], [])

        assert result.missing == [requirement]
        assert not result.is_complete

    def test_kind_must_match(self):
        """role key가 같아도 종류가 다르면 매칭 안됨"""
        requirement = ArtifactRequirement("EXOCOMPUTE_EKS_WORKERNODE", "instance-profile", PREFIX)
        binding = _role("EXOCOMPUTE_EKS_WORKERNODE", "rubrik-exocompute-worker")

        result = match([requirement], [binding])

        assert result.missing == [requirement]
        assert result.extra == [binding]

    def test_extra(self):
        """요구되지 않은 바인딩은 extra (오류 아님)"""
        binding = _role("LEGACY_ROLE", "old")

        result = match([], [binding])

        assert result.extra == [binding]
        assert result.is_complete

    def test_no_pattern_is_unverified(self):
        """패턴 없는 요구사항은 키만으로 매칭하고 unverified"""
        binding = _role("CROSSACCOUNT", "anything")

        result = match([ArtifactRequirement("CROSSACCOUNT", "role")], [binding])

        assert result.matched == {"CROSSACCOUNT": [binding]}
        assert result.unverified == [binding]

    def test_pattern_mismatch_rejected(self):
        """패턴 불일치 바인딩은 rejected, 요구사항은 missing"""
        requirement = ArtifactRequirement("EXOCOMPUTE_EKS_MASTERNODE", "role", PREFIX)
        binding = _role("EXOCOMPUTE_EKS_MASTERNODE", "my-master")

        result = match([requirement], [binding])

        assert result.missing == [requirement]
        assert len(result.rejected) == 1
        assert result.rejected[0].binding == binding
        assert "my-master" in result.rejected[0].reason
        assert result.extra == []

    def test_one_good_candidate_is_enough(self):
        requirement = ArtifactRequirement("EXOCOMPUTE_EKS_MASTERNODE", "role", PREFIX)
        good = _role("EXOCOMPUTE_EKS_MASTERNODE", "rubrik-exocompute-master")
        bad = _role("EXOCOMPUTE_EKS_MASTERNODE", "my-master")

        result = match([requirement], [bad, good])

        assert result.matched == {"EXOCOMPUTE_EKS_MASTERNODE": [good]}
        assert result.missing == []
        assert len(result.rejected) == 1

    def test_duplicates_collapsed(self):
        """같은 요구사항/바인딩은 한 번만 처리"""
        requirement = ArtifactRequirement("CROSSACCOUNT", "role")
        binding = _role("CROSSACCOUNT", "rubrik")

        result = match([requirement, requirement], [binding, binding])

        assert result.matched_count == 1
        assert result.unverified == [binding]

    def test_to_dict(self):
        result = match(
            [ArtifactRequirement("EXOCOMPUTE_EKS_MASTERNODE", "role", PREFIX)],
            [_role("OTHER", "x")],
        )
        data = result.to_dict()

        assert data["missing"] == [{"role_key": "EXOCOMPUTE_EKS_MASTERNODE", "kind": "role", "pattern": "rubrik-exocompute-*"}]
        assert data["extra"][0]["role_key"] == "OTHER"
        assert data["matched"] == {}
