"""
tests/onboarding/test_config.py - 설정 모듈 테스트
"""

import pytest

from onboarding.config import (
    MAX_IN_FLIGHT_LIMIT,
    ReconcileConfig,
    Settings,
    get_env_bool,
    get_env_float,
    get_env_int,
    get_env_str,
    get_version,
    settings,
)
from onboarding.tracker.retry import RetryConfig


class TestEnvHelpers:
    """ONBOARD_* 환경 변수 헬퍼 테스트"""

    def test_str_default(self, monkeypatch):
        """값이 없으면 기본값"""
        monkeypatch.delenv("ONBOARD_REMOTE_URL", raising=False)
        assert get_env_str("REMOTE_URL", "x") == "x"

    def test_str_prefixed(self, monkeypatch):
        """ONBOARD_ 접두어가 자동으로 붙음"""
        monkeypatch.setenv("ONBOARD_REMOTE_URL", "https://rsc.example.com")
        assert get_env_str("REMOTE_URL", "") == "https://rsc.example.com"

    def test_int_parse(self, monkeypatch):
        monkeypatch.setenv("ONBOARD_MAX_IN_FLIGHT", "7")
        assert get_env_int("MAX_IN_FLIGHT", 5) == 7

    def test_int_invalid_falls_back(self, monkeypatch):
        """잘못된 정수는 기본값"""
        monkeypatch.setenv("ONBOARD_MAX_IN_FLIGHT", "many")
        assert get_env_int("MAX_IN_FLIGHT", 5) == 5

    def test_int_blank(self, monkeypatch):
        monkeypatch.setenv("ONBOARD_MAX_IN_FLIGHT", "  ")
        assert get_env_int("MAX_IN_FLIGHT", 5) == 5

    def test_float_parse(self, monkeypatch):
        monkeypatch.setenv("ONBOARD_POLL_INTERVAL_SECONDS", "2.5")
        assert get_env_float("POLL_INTERVAL_SECONDS", 10.0) == 2.5

    def test_float_invalid_falls_back(self, monkeypatch):
        monkeypatch.setenv("ONBOARD_POLL_INTERVAL_SECONDS", "soon")
        assert get_env_float("POLL_INTERVAL_SECONDS", 10.0) == 10.0

    @pytest.mark.parametrize("raw,expected", [("1", True), ("true", True), ("YES", True), ("on", True), ("0", False), ("no", False)])
    def test_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("ONBOARD_FLAG", raw)
        assert get_env_bool("FLAG", not expected) is expected


class TestSettings:
    """Settings 테스트"""

    def test_frozen(self):
        """Settings는 불변"""
        with pytest.raises(AttributeError):
            settings.POLL_INTERVAL_SECONDS = 1.0  # type: ignore[misc]

    def test_defaults(self):
        assert Settings.POLL_INTERVAL_SECONDS == 10.0
        assert Settings.MAX_IN_FLIGHT_OPERATIONS == 5
        assert "STANDARD" in Settings.VALID_CLOUD_TYPES

    def test_version(self):
        assert get_version().count(".") == 2


class TestReconcileConfig:
    """ReconcileConfig 테스트"""

    def test_from_settings(self):
        """전역 설정 값을 기본값으로 사용"""
        config = ReconcileConfig.from_settings()

        assert config.timeout == settings.OPERATION_TIMEOUT_SECONDS
        assert config.poll_interval == settings.POLL_INTERVAL_SECONDS
        assert config.max_in_flight == settings.MAX_IN_FLIGHT_OPERATIONS
        assert isinstance(config.retry, RetryConfig)
        assert config.retry.max_retries == settings.QUERY_MAX_RETRIES
        assert config.delete_snapshots is False

    def test_overrides(self):
        config = ReconcileConfig.from_settings(timeout=5, max_in_flight=2, delete_snapshots=True)

        assert config.timeout == 5
        assert config.max_in_flight == 2
        assert config.delete_snapshots is True

    def test_max_in_flight_clamped(self):
        """상한을 넘으면 상한으로 조정"""
        config = ReconcileConfig(max_in_flight=MAX_IN_FLIGHT_LIMIT + 10)
        assert config.max_in_flight == MAX_IN_FLIGHT_LIMIT

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_in_flight": 0}, {"timeout": 0}, {"timeout": -1}, {"poll_interval": 0}],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ReconcileConfig(**kwargs)
