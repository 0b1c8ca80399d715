"""
onboarding/exceptions.py - 통합 예외 계층 구조

재조정 엔진 전체에서 사용되는 예외 클래스들을 정의합니다.
일관된 예외 처리와 에러 메시지를 제공합니다.

예외 계층 구조:
    OnboardingError (베이스)
    ├── ValidationError (입력 검증 - 재시도 없음, 모든 제출 차단)
    │   ├── UnknownPermissionGroup
    │   ├── MissingBaselineGroup
    │   ├── DuplicateGroup
    │   ├── InvalidFeatureSpec
    │   │   └── UnsupportedFeature
    │   └── InvalidAccountSpec
    ├── CatalogLoadError (권한 카탈로그 로드 실패)
    ├── SubmissionRejected (원격 플레인의 동기 거절 - 기능 단위)
    ├── RemoteUnavailable (일시적 전송 실패 - 추적기가 재시도)
    ├── TrackingUnavailable (재시도 소진 후 추적 불가)
    ├── ArtifactSourceError (IAM 아티팩트 조회 실패)
    └── ConfigError (설정 관련)

Usage:
    from onboarding.exceptions import SubmissionRejected, is_transient

    try:
        op_id = remote.submit(request)
    except SubmissionRejected as e:
        print(e.error_code)
    except Exception as e:
        if is_transient(e):
            ...
"""

from typing import Any, Dict, Iterable, Optional

# =============================================================================
# 베이스 예외
# =============================================================================


class OnboardingError(Exception):
    """재조정 엔진 기본 예외 클래스

    모든 커스텀 예외의 베이스 클래스입니다.

    Attributes:
        message: 에러 메시지
        cause: 원인 예외 (체이닝용)
        details: 추가 상세 정보
    """

    def __init__(
        self,
        message: str,
        cause: Optional[Exception] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.details = details or {}

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    @property
    def code(self) -> str:
        """보고서에 기록되는 에러 코드 (클래스명)"""
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """예외 정보를 딕셔너리로 반환"""
        return {
            "error_type": self.code,
            "message": self.message,
            "cause": str(self.cause) if self.cause else None,
            "details": self.details,
        }


# =============================================================================
# 검증 관련 예외
# =============================================================================


class ValidationError(OnboardingError):
    """입력 검증 오류

    권한 그룹, 기능 명세, 계정 식별자 검증 실패를 나타냅니다.
    재시도 대상이 아니며, 발생 시 어떤 작업도 제출되지 않습니다.
    """


class UnknownPermissionGroup(ValidationError):
    """(클라우드, 기능) 조합에 정의되지 않은 권한 그룹"""

    def __init__(self, cloud: str, feature: str, group: str):
        message = f"알 수 없는 권한 그룹 [{cloud}/{feature}]: {group}"
        super().__init__(message, details={"cloud": cloud, "feature": feature, "group": group})
        self.cloud = cloud
        self.feature = feature
        self.group = group


class MissingBaselineGroup(ValidationError):
    """기본(baseline) 권한 그룹 누락"""

    def __init__(self, cloud: str, feature: str, baseline: str, groups: Iterable[str]):
        groups = sorted(groups)
        message = f"기본 권한 그룹 누락 [{cloud}/{feature}]: {baseline} 필요 (요청: {', '.join(groups)})"
        super().__init__(
            message,
            details={"cloud": cloud, "feature": feature, "baseline": baseline, "groups": groups},
        )
        self.cloud = cloud
        self.feature = feature
        self.baseline = baseline
        self.groups = groups


class DuplicateGroup(ValidationError):
    """같은 기능 내 중복 권한 그룹"""

    def __init__(self, cloud: str, feature: str, group: str):
        message = f"중복 권한 그룹 [{cloud}/{feature}]: {group}"
        super().__init__(message, details={"cloud": cloud, "feature": feature, "group": group})
        self.cloud = cloud
        self.feature = feature
        self.group = group


class InvalidFeatureSpec(ValidationError):
    """잘못된 기능 명세 (중복 기능, 잘못된 파라미터, 의존성 위반 등)"""

    def __init__(self, feature: str, reason: str, cause: Optional[Exception] = None):
        message = f"잘못된 기능 명세 [{feature}]: {reason}"
        super().__init__(message, cause, details={"feature": feature, "reason": reason})
        self.feature = feature
        self.reason = reason


class UnsupportedFeature(InvalidFeatureSpec):
    """계정의 클라우드에서 지원하지 않는 기능"""

    def __init__(self, cloud: str, feature: str):
        super().__init__(feature, f"{cloud} 클라우드에서 지원하지 않는 기능")
        self.cloud = cloud
        self.details["cloud"] = cloud


class InvalidAccountSpec(ValidationError):
    """잘못된 클라우드 계정 식별자"""

    def __init__(self, cloud: str, native_id: str, reason: str):
        message = f"잘못된 계정 [{cloud}/{native_id}]: {reason}"
        super().__init__(message, details={"cloud": cloud, "native_id": native_id, "reason": reason})
        self.cloud = cloud
        self.native_id = native_id
        self.reason = reason


# =============================================================================
# 카탈로그 / 설정 관련 예외
# =============================================================================


class CatalogLoadError(OnboardingError):
    """권한 카탈로그 테이블 로드/파싱 실패"""

    def __init__(self, source: str, reason: str, cause: Optional[Exception] = None):
        message = f"권한 카탈로그 로드 실패 [{source}]: {reason}"
        super().__init__(message, cause, details={"source": source})
        self.source = source
        self.reason = reason


class ConfigError(OnboardingError):
    """설정 관련 예외"""

    def __init__(
        self,
        key: str,
        message: str,
        cause: Optional[Exception] = None,
    ):
        full_message = f"설정 오류 [{key}]: {message}"
        super().__init__(full_message, cause)
        self.config_key = key
        self.details["config_key"] = key


# =============================================================================
# 원격 작업 관련 예외
# =============================================================================


class SubmissionRejected(OnboardingError):
    """원격 플레인이 요청을 동기적으로 거절함 (쿼터, 잘못된 리전 등)

    해당 기능만 실패로 처리되며 다른 기능의 제출은 계속됩니다.
    """

    def __init__(
        self,
        feature: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        message = f"작업 제출 거절 [{feature}]"
        if error_code:
            message = f"{message} ({error_code})"
        if error_message:
            message = f"{message}: {error_message}"
        super().__init__(message, cause)
        self.feature = feature
        self.error_code = error_code
        self.error_message = error_message
        self.details.update({"feature": feature, "error_code": error_code})


class RemoteUnavailable(OnboardingError):
    """원격 플레인에 일시적으로 도달할 수 없음 (네트워크, 429, 5xx)"""

    def __init__(
        self,
        operation: str,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        message = f"원격 플레인 응답 없음 [{operation}]"
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message, cause)
        self.operation = operation
        self.status_code = status_code
        self.details.update({"operation": operation, "status_code": status_code})


class TrackingUnavailable(OnboardingError):
    """상태 조회 재시도 소진

    추적 대상 작업 자체의 실패와는 구분됩니다. 작업은 원격에서 계속
    진행 중일 수 있습니다.
    """

    def __init__(self, operation_id: str, attempts: int, cause: Optional[Exception] = None):
        message = f"작업 추적 불가 [{operation_id}]: {attempts}회 조회 실패"
        super().__init__(message, cause, details={"operation_id": operation_id, "attempts": attempts})
        self.operation_id = operation_id
        self.attempts = attempts


class ArtifactSourceError(OnboardingError):
    """IAM 아티팩트 조회 실패"""

    def __init__(
        self,
        account: str,
        operation: str,
        error_code: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        message = f"아티팩트 조회 실패 [{account}] {operation}"
        if error_code:
            message = f"{message} ({error_code})"
        super().__init__(message, cause, details={"account": account, "operation": operation, "error_code": error_code})
        self.account = account
        self.operation = operation
        self.error_code = error_code

    @classmethod
    def from_client_error(cls, account: str, operation: str, client_error: Exception) -> "ArtifactSourceError":
        """botocore.exceptions.ClientError로부터 생성"""
        error_code = None
        if hasattr(client_error, "response"):
            error_code = client_error.response.get("Error", {}).get("Code")
        return cls(account=account, operation=operation, error_code=error_code, cause=client_error)


# =============================================================================
# 예외 유틸리티 함수
# =============================================================================

THROTTLING_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RateExceeded",
}

TRANSIENT_CODES = THROTTLING_CODES | {
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalError",
    "InternalServiceError",
    "RequestTimeout",
    "RequestTimeoutException",
}


def get_error_code(error: Exception) -> str:
    """예외 객체에서 에러 코드 문자열 추출

    botocore ClientError는 response의 Code, SubmissionRejected는 error_code,
    그 외에는 예외 클래스명을 반환합니다.
    """
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        code: str = response.get("Error", {}).get("Code", "Unknown")
        return code
    if isinstance(error, SubmissionRejected) and error.error_code:
        return error.error_code
    return error.__class__.__name__


def is_throttling(error: Exception) -> bool:
    """스로틀링 오류인지 확인"""
    if isinstance(error, RemoteUnavailable):
        return error.status_code == 429
    return get_error_code(error) in THROTTLING_CODES


def is_transient(error: Exception) -> bool:
    """재시도 가능한 일시적 오류인지 확인

    RemoteUnavailable, 스로틀링/서비스 오류 코드, 네트워크 계열 예외
    (requests 전송 오류 포함)인 경우 True를 반환합니다. 그 밖의
    OnboardingError는 재시도 대상이 아닙니다.
    """
    if isinstance(error, RemoteUnavailable):
        return True
    if isinstance(error, OnboardingError):
        return False
    if get_error_code(error) in TRANSIENT_CODES:
        return True

    # requests.RequestException 도 IOError(OSError) 계열
    return isinstance(error, (ConnectionError, TimeoutError, OSError))


def format_error_for_user(error: Exception) -> str:
    """사용자에게 표시할 에러 메시지 포맷팅"""
    if isinstance(error, OnboardingError):
        return str(error)

    response = getattr(error, "response", None)
    if isinstance(response, dict):
        error_info = response.get("Error", {})
        code = error_info.get("Code", "UnknownError")
        message = error_info.get("Message", str(error))
        friendly_messages = {
            "AccessDenied": "권한이 없습니다. IAM 정책을 확인하세요.",
            "ExpiredToken": "인증 토큰이 만료되었습니다. 다시 로그인하세요.",
            "Throttling": "요청이 너무 많습니다. 잠시 후 다시 시도하세요.",
        }
        return friendly_messages.get(code, f"{code}: {message}")

    return str(error)
