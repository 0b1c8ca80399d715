"""
onboarding/remote/http.py - HTTP 원격 작업 클라이언트

requests.Session 기반으로 원격 컨트롤 플레인의 작업 API를 호출합니다.

API:
    POST {base}/operations          → {"operation_id": "..."}
    GET  {base}/operations/{id}     → {"status": "RUNNING", "error": null}

오류 분류:
    - 제출 시 4xx (429 제외)           → SubmissionRejected
    - 연결 오류, 타임아웃, 429, 5xx   → RemoteUnavailable (일시적)
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from onboarding.config import settings
from onboarding.exceptions import RemoteUnavailable, SubmissionRejected
from onboarding.remote.base import RemoteOperations, normalize_state
from onboarding.tracker.types import OperationRequest, RemoteStatus

logger = logging.getLogger(__name__)


class HttpRemoteOperations(RemoteOperations):
    """HTTP 원격 작업 클라이언트

    Args:
        base_url: 원격 플레인 주소 (기본: settings.REMOTE_URL)
        token: Bearer 토큰
        timeout: 요청 타임아웃 (초)
        session: 재사용할 requests.Session
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        base_url = base_url or settings.REMOTE_URL
        if not base_url:
            raise ValueError("원격 플레인 주소가 필요합니다 (--url 또는 ONBOARD_REMOTE_URL)")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REMOTE_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def submit(self, request: OperationRequest) -> str:
        feature = request.feature_name.value
        response = self._call("POST", "/operations", f"submit {feature}", json=request.to_payload())

        if 400 <= response.status_code < 500:
            code, message = _error_fields(response)
            raise SubmissionRejected(feature, error_code=code or f"HTTP{response.status_code}", error_message=message)

        data = _json(response, f"submit {feature}")
        operation_id = data.get("operation_id")
        if not operation_id:
            raise RemoteUnavailable(f"submit {feature}", response.status_code)
        return str(operation_id)

    def query(self, operation_id: str) -> RemoteStatus:
        response = self._call("GET", f"/operations/{operation_id}", f"query {operation_id}")
        if 400 <= response.status_code < 500:
            code, message = _error_fields(response)
            raise ValueError(f"작업 조회 실패 [{operation_id}] HTTP {response.status_code}: {code} {message}")

        data = _json(response, f"query {operation_id}")
        return RemoteStatus(status=normalize_state(data.get("status", "")), error=data.get("error"))

    def _call(self, method: str, path: str, operation: str, **kwargs: Any) -> requests.Response:
        """요청 실행 및 일시적 오류 분류"""
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.debug(f"{method} {url} 실패: {e}")
            raise RemoteUnavailable(operation, cause=e) from e

        if response.status_code == 429 or response.status_code >= 500:
            logger.debug(f"{method} {url} → HTTP {response.status_code}")
            raise RemoteUnavailable(operation, response.status_code)
        return response


def _json(response: requests.Response, operation: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise RemoteUnavailable(operation, response.status_code, cause=e) from e
    if not isinstance(data, dict):
        raise RemoteUnavailable(operation, response.status_code)
    return data


def _error_fields(response: requests.Response) -> tuple[str | None, str | None]:
    """오류 응답에서 (code, message) 추출"""
    try:
        data = response.json()
    except ValueError:
        return None, response.text or None
    if not isinstance(data, dict):
        return None, str(data)
    error = data.get("error", data)
    if isinstance(error, dict):
        return error.get("code"), error.get("message")
    return data.get("code"), str(error) if error else None
