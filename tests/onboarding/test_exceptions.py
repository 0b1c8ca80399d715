"""
tests/onboarding/test_exceptions.py - 예외 계층 및 유틸리티 테스트
"""

import pytest
import requests
from botocore.exceptions import ClientError

from onboarding.exceptions import (
    ArtifactSourceError,
    ConfigError,
    DuplicateGroup,
    InvalidFeatureSpec,
    MissingBaselineGroup,
    OnboardingError,
    RemoteUnavailable,
    SubmissionRejected,
    TrackingUnavailable,
    UnknownPermissionGroup,
    UnsupportedFeature,
    ValidationError,
    format_error_for_user,
    get_error_code,
    is_throttling,
    is_transient,
)


def _client_error(code: str, message: str = "error") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, "ListRoles")


class TestOnboardingError:
    """기본 예외 테스트"""

    def test_message_and_cause(self):
        cause = ValueError("boom")
        error = OnboardingError("실패", cause=cause)

        assert str(error) == "실패: boom"
        assert error.cause is cause

    def test_code_is_class_name(self):
        assert TrackingUnavailable("op-1", 3).code == "TrackingUnavailable"

    def test_to_dict(self):
        error = TrackingUnavailable("op-1", 3, cause=RemoteUnavailable("query op-1", 503))
        data = error.to_dict()

        assert data["error_type"] == "TrackingUnavailable"
        assert data["details"] == {"operation_id": "op-1", "attempts": 3}
        assert "503" in data["cause"]


class TestValidationErrors:
    """검증 예외 테스트"""

    @pytest.mark.parametrize(
        "error",
        [
            UnknownPermissionGroup("AWS", "EXOCOMPUTE", "NOPE"),
            MissingBaselineGroup("AWS", "EXOCOMPUTE", "BASIC", ["RSC_MANAGED_CLUSTER"]),
            DuplicateGroup("AWS", "EXOCOMPUTE", "BASIC"),
            InvalidFeatureSpec("EXOCOMPUTE", "bad"),
            UnsupportedFeature("GCP", "RDS_PROTECTION"),
        ],
    )
    def test_all_are_validation_errors(self, error):
        """검증 실패 예외는 모두 ValidationError"""
        assert isinstance(error, ValidationError)
        assert isinstance(error, OnboardingError)

    def test_missing_baseline_details(self):
        error = MissingBaselineGroup("AWS", "EXOCOMPUTE", "BASIC", {"RSC_MANAGED_CLUSTER"})

        assert error.baseline == "BASIC"
        assert error.groups == ["RSC_MANAGED_CLUSTER"]
        assert "BASIC" in str(error)

    def test_unsupported_feature_is_invalid_spec(self):
        error = UnsupportedFeature("GCP", "RDS_PROTECTION")

        assert isinstance(error, InvalidFeatureSpec)
        assert error.details["cloud"] == "GCP"

    def test_config_error_key(self):
        error = ConfigError("state.yaml:account", "account 블록이 필요합니다")

        assert error.config_key == "state.yaml:account"
        assert "state.yaml:account" in str(error)


class TestRemoteErrors:
    """원격 플레인 예외 테스트"""

    def test_submission_rejected_message(self):
        error = SubmissionRejected("EXOCOMPUTE", error_code="QuotaExceeded", error_message="limit reached")

        assert "QuotaExceeded" in str(error)
        assert "limit reached" in str(error)
        assert error.details["error_code"] == "QuotaExceeded"

    def test_remote_unavailable_status(self):
        error = RemoteUnavailable("POST /operations", 503)

        assert error.status_code == 503
        assert "HTTP 503" in str(error)

    def test_artifact_source_error_from_client_error(self):
        error = ArtifactSourceError.from_client_error("AWS:prod", "list_roles", _client_error("AccessDenied"))

        assert error.error_code == "AccessDenied"
        assert error.account == "AWS:prod"
        assert "list_roles" in str(error)


class TestErrorUtilities:
    """에러 유틸리티 함수 테스트"""

    def test_get_error_code_client_error(self):
        assert get_error_code(_client_error("Throttling")) == "Throttling"

    def test_get_error_code_submission_rejected(self):
        assert get_error_code(SubmissionRejected("CNP", error_code="InvalidRegion")) == "InvalidRegion"

    def test_get_error_code_fallback(self):
        assert get_error_code(ValueError("x")) == "ValueError"

    def test_is_throttling(self):
        assert is_throttling(_client_error("ThrottlingException"))
        assert is_throttling(RemoteUnavailable("query", 429))
        assert not is_throttling(RemoteUnavailable("query", 503))
        assert not is_throttling(_client_error("AccessDenied"))

    @pytest.mark.parametrize(
        "error",
        [
            RemoteUnavailable("query", 503),
            _client_error("ServiceUnavailable"),
            _client_error("RequestLimitExceeded"),
            requests.ConnectionError("reset"),
            requests.Timeout("slow"),
            TimeoutError("slow"),
        ],
    )
    def test_is_transient(self, error):
        """일시적 오류는 재시도 대상"""
        assert is_transient(error)

    @pytest.mark.parametrize(
        "error",
        [
            SubmissionRejected("CNP", error_code="QuotaExceeded"),
            TrackingUnavailable("op-1", 3),
            _client_error("AccessDenied"),
            ValueError("unknown state"),
        ],
    )
    def test_is_not_transient(self, error):
        assert not is_transient(error)

    def test_format_error_for_user_friendly(self):
        assert "권한이 없습니다" in format_error_for_user(_client_error("AccessDenied"))

    def test_format_error_for_user_onboarding(self):
        error = InvalidFeatureSpec("OUTPOST", "bad")
        assert format_error_for_user(error) == str(error)
