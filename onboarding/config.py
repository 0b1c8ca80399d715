"""
onboarding/config.py - 중앙 설정 관리

재조정(reconciliation) 엔진 전체에서 사용하는 기본값을 한 곳에서 관리합니다.
모든 값은 불변(frozen) Settings 인스턴스로 제공되며, 모듈 로드 시점에
ONBOARD_* 환경 변수로 한 번만 덮어쓸 수 있습니다.

Usage:
    from onboarding.config import settings, ReconcileConfig

    interval = settings.POLL_INTERVAL_SECONDS   # 10

    # 재조정 1회분 설정
    config = ReconcileConfig.from_settings()
    config = ReconcileConfig(timeout=60, poll_interval=2, max_in_flight=3)

환경 변수:
    ONBOARD_POLL_INTERVAL_SECONDS      작업 상태 조회 간격 (초)
    ONBOARD_OPERATION_TIMEOUT_SECONDS  작업 1건당 최대 대기 시간 (초)
    ONBOARD_MAX_IN_FLIGHT              동시에 추적할 최대 작업 수
    ONBOARD_QUERY_MAX_RETRIES          상태 조회 실패 시 최대 재시도 횟수
    ONBOARD_REMOTE_URL                 원격 컨트롤 플레인 주소
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from onboarding.tracker.retry import RetryConfig

logger = logging.getLogger(__name__)

__version__ = "0.4.0"

ENV_PREFIX = "ONBOARD_"

# 동시 작업 수 상한 (원격 플레인 rate limit 보호)
MAX_IN_FLIGHT_LIMIT = 50


# =============================================================================
# 환경 변수 헬퍼
# =============================================================================


def get_env_str(name: str, default: str) -> str:
    """문자열 환경 변수 조회 (ONBOARD_ 접두어 자동 추가)"""
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def get_env_int(name: str, default: int) -> int:
    """정수 환경 변수 조회

    파싱할 수 없는 값이면 경고를 남기고 기본값을 반환합니다.
    """
    raw = os.environ.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"잘못된 정수 환경 변수 {ENV_PREFIX}{name}={raw!r}, 기본값 {default} 사용")
        return default


def get_env_float(name: str, default: float) -> float:
    """실수 환경 변수 조회"""
    raw = os.environ.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"잘못된 실수 환경 변수 {ENV_PREFIX}{name}={raw!r}, 기본값 {default} 사용")
        return default


def get_env_bool(name: str, default: bool) -> bool:
    """불리언 환경 변수 조회 ("1", "true", "yes", "on" → True)"""
    raw = os.environ.get(f"{ENV_PREFIX}{name}")
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_version() -> str:
    """패키지 버전 문자열 반환"""
    return __version__


# =============================================================================
# Settings
# =============================================================================


@dataclass(frozen=True)
class Settings:
    """전역 설정 (불변)

    Attributes:
        POLL_INTERVAL_SECONDS: 원격 작업 상태 조회 간격
        POLL_JITTER_RATIO: 조회 간격에 적용할 지터 비율 (0.2 = ±20%)
        OPERATION_TIMEOUT_SECONDS: 작업 1건의 최대 대기 시간
        QUERY_MAX_RETRIES: 일시적 조회 실패 시 최대 재시도 횟수
        QUERY_BASE_DELAY_SECONDS: 재시도 지수 백오프 기본 대기 시간
        QUERY_MAX_DELAY_SECONDS: 재시도 대기 시간 상한
        MAX_IN_FLIGHT_OPERATIONS: 동시에 추적하는 최대 작업 수
        DEFAULT_CLOUD_TYPE: AWS 클라우드 타입 기본값
        ARTIFACT_TAG_KEY: IAM 리소스에서 role key를 읽어올 태그 키
        REMOTE_URL: 원격 컨트롤 플레인 기본 주소
        REMOTE_TIMEOUT_SECONDS: HTTP 요청 타임아웃
        CATALOG_VERSION: 기대하는 권한 카탈로그 버전 (빈 문자열이면 검사 안함)
    """

    POLL_INTERVAL_SECONDS: float = 10.0
    POLL_JITTER_RATIO: float = 0.2
    OPERATION_TIMEOUT_SECONDS: float = 1800.0
    QUERY_MAX_RETRIES: int = 3
    QUERY_BASE_DELAY_SECONDS: float = 1.0
    QUERY_MAX_DELAY_SECONDS: float = 30.0
    MAX_IN_FLIGHT_OPERATIONS: int = 5
    DEFAULT_CLOUD_TYPE: str = "STANDARD"
    ARTIFACT_TAG_KEY: str = "rsc:role-key"
    REMOTE_URL: str = ""
    REMOTE_TIMEOUT_SECONDS: int = 30
    CATALOG_VERSION: str = ""
    VALID_CLOUD_TYPES: tuple[str, ...] = ("STANDARD", "CHINA", "GOV")


def _load_settings() -> Settings:
    """환경 변수를 반영한 Settings 생성"""
    max_in_flight = get_env_int("MAX_IN_FLIGHT", Settings.MAX_IN_FLIGHT_OPERATIONS)
    max_in_flight = max(1, min(max_in_flight, MAX_IN_FLIGHT_LIMIT))

    return Settings(
        POLL_INTERVAL_SECONDS=get_env_float("POLL_INTERVAL_SECONDS", Settings.POLL_INTERVAL_SECONDS),
        POLL_JITTER_RATIO=get_env_float("POLL_JITTER_RATIO", Settings.POLL_JITTER_RATIO),
        OPERATION_TIMEOUT_SECONDS=get_env_float("OPERATION_TIMEOUT_SECONDS", Settings.OPERATION_TIMEOUT_SECONDS),
        QUERY_MAX_RETRIES=get_env_int("QUERY_MAX_RETRIES", Settings.QUERY_MAX_RETRIES),
        QUERY_BASE_DELAY_SECONDS=get_env_float("QUERY_BASE_DELAY_SECONDS", Settings.QUERY_BASE_DELAY_SECONDS),
        QUERY_MAX_DELAY_SECONDS=get_env_float("QUERY_MAX_DELAY_SECONDS", Settings.QUERY_MAX_DELAY_SECONDS),
        MAX_IN_FLIGHT_OPERATIONS=max_in_flight,
        DEFAULT_CLOUD_TYPE=get_env_str("DEFAULT_CLOUD_TYPE", Settings.DEFAULT_CLOUD_TYPE),
        ARTIFACT_TAG_KEY=get_env_str("ARTIFACT_TAG_KEY", Settings.ARTIFACT_TAG_KEY),
        REMOTE_URL=get_env_str("REMOTE_URL", Settings.REMOTE_URL),
        REMOTE_TIMEOUT_SECONDS=get_env_int("REMOTE_TIMEOUT_SECONDS", Settings.REMOTE_TIMEOUT_SECONDS),
        CATALOG_VERSION=get_env_str("CATALOG_VERSION", Settings.CATALOG_VERSION),
    )


settings = _load_settings()


# =============================================================================
# ReconcileConfig
# =============================================================================


def _default_retry() -> RetryConfig:
    from onboarding.tracker.retry import RetryConfig

    return RetryConfig(
        max_retries=settings.QUERY_MAX_RETRIES,
        base_delay=settings.QUERY_BASE_DELAY_SECONDS,
        max_delay=settings.QUERY_MAX_DELAY_SECONDS,
    )


@dataclass
class ReconcileConfig:
    """재조정 1회분 실행 설정

    Attributes:
        timeout: 작업 1건당 최대 대기 시간 (초)
        poll_interval: 상태 조회 간격 (초)
        jitter_ratio: 조회 간격 지터 비율
        max_in_flight: 동시에 추적할 최대 작업 수 (1~50)
        retry: 일시적 조회 실패 재시도 설정
        delete_snapshots: 기능 비활성화 시 스냅샷 삭제 여부
    """

    timeout: float = field(default_factory=lambda: settings.OPERATION_TIMEOUT_SECONDS)
    poll_interval: float = field(default_factory=lambda: settings.POLL_INTERVAL_SECONDS)
    jitter_ratio: float = field(default_factory=lambda: settings.POLL_JITTER_RATIO)
    max_in_flight: int = field(default_factory=lambda: settings.MAX_IN_FLIGHT_OPERATIONS)
    retry: RetryConfig = field(default_factory=_default_retry)
    delete_snapshots: bool = False

    def __post_init__(self) -> None:
        if self.max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {self.max_in_flight}")
        if self.max_in_flight > MAX_IN_FLIGHT_LIMIT:
            self.max_in_flight = MAX_IN_FLIGHT_LIMIT
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")

    @classmethod
    def from_settings(cls, **overrides) -> ReconcileConfig:
        """전역 settings 기반 설정 생성 (일부 값 덮어쓰기 가능)"""
        return cls(**overrides)
