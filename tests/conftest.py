"""
tests/conftest.py - pytest 공통 픽스처

원격 플레인/시계 가짜 구현과 테스트 헬퍼를 제공합니다.

Usage:
    def test_something(reconciler, fake_remote, aws_account):
        fake_remote.script("CLOUD_NATIVE_PROTECTION", "RUNNING", "SUCCEEDED")
        result = reconciler.reconcile(aws_account, desired)
"""

import os
import sys
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

# 프로젝트 루트를 sys.path에 추가
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from onboarding.catalog import PermissionCatalog  # noqa: E402
from onboarding.config import ReconcileConfig  # noqa: E402
from onboarding.exceptions import RemoteUnavailable, SubmissionRejected  # noqa: E402
from onboarding.orchestrator import Reconciler  # noqa: E402
from onboarding.remote.base import RemoteOperations, normalize_state  # noqa: E402
from onboarding.tracker.clock import Clock  # noqa: E402
from onboarding.tracker.retry import RetryConfig  # noqa: E402
from onboarding.tracker.types import OperationKind, OperationRequest, OperationStatus, RemoteStatus  # noqa: E402
from onboarding.types import CloudAccount, Feature, FeatureName  # noqa: E402

# =============================================================================
# 환경 설정
# =============================================================================


@pytest.fixture(autouse=True)
def setup_test_environment():
    """테스트 환경 설정"""
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

    yield


# =============================================================================
# 가짜 원격 플레인
# =============================================================================


class FakeRemote(RemoteOperations):
    """스크립트 기반 원격 플레인 (스레드 안전)

    기능(또는 기능+작업 종류)별로 조회 시 돌려줄 상태 순서를 지정합니다.
    마지막 상태는 계속 반복됩니다. 기본 스크립트는 RUNNING → SUCCEEDED.
    """

    DEFAULT_SCRIPT = ("RUNNING", "SUCCEEDED")

    def __init__(self):
        self._lock = threading.Lock()
        self._scripts: Dict[Tuple[FeatureName, Optional[OperationKind]], Tuple[str, ...]] = {}
        self._errors: Dict[FeatureName, str] = {}
        self._rejections: Dict[FeatureName, str] = {}
        self._transient: Dict[FeatureName, int] = {}
        self._ops: Dict[str, List[str]] = {}
        self._op_features: Dict[str, FeatureName] = {}
        self._active: set = set()
        self.requests: List[OperationRequest] = []
        self.queries: List[str] = []
        self.peak_active = 0

    # 스크립트 설정 ------------------------------------------------------------

    def script(self, feature, *states: str, kind: Optional[OperationKind] = None, error: Optional[str] = None):
        name = FeatureName.parse(feature)
        self._scripts[(name, kind)] = tuple(states)
        if error:
            self._errors[name] = error

    def reject(self, feature, code: str = "QuotaExceeded"):
        self._rejections[FeatureName.parse(feature)] = code

    def fail_queries(self, feature, times: int):
        """해당 기능 작업의 상태 조회를 times회 일시적으로 실패시킴"""
        self._transient[FeatureName.parse(feature)] = times

    # RemoteOperations --------------------------------------------------------

    def submit(self, request: OperationRequest) -> str:
        with self._lock:
            self.requests.append(request)
            name = request.feature_name
            if name in self._rejections:
                raise SubmissionRejected(name.value, error_code=self._rejections[name], error_message="rejected")

            op_id = f"op-{len(self.requests)}"
            script = self._scripts.get((name, request.kind)) or self._scripts.get((name, None)) or self.DEFAULT_SCRIPT
            self._ops[op_id] = list(script)
            self._op_features[op_id] = name
            self._active.add(op_id)
            self.peak_active = max(self.peak_active, len(self._active))
            return op_id

    def query(self, operation_id: str) -> RemoteStatus:
        with self._lock:
            self.queries.append(operation_id)
            name = self._op_features[operation_id]
            if self._transient.get(name, 0) > 0:
                self._transient[name] -= 1
                raise RemoteUnavailable(f"query {operation_id}", 503)

            states = self._ops[operation_id]
            state = states.pop(0) if len(states) > 1 else states[0]
            status = normalize_state(state)
            if status.is_terminal:
                self._active.discard(operation_id)
            error = self._errors.get(name) if status == OperationStatus.FAILED else None
            return RemoteStatus(status, error)

    # 조회 헬퍼 ----------------------------------------------------------------

    def kinds(self, feature=None) -> List[OperationKind]:
        """제출된 작업 종류 (기능 필터 가능)"""
        name = FeatureName.parse(feature) if feature else None
        return [r.kind for r in self.requests if name is None or r.feature_name == name]


class FakeClock(Clock):
    """가상 시계

    스레드마다 독립된 가상 시각을 가지며, sleep은 즉시 시각을 전진시킵니다.
    on_sleep 훅으로 대기 중 취소 같은 이벤트를 주입할 수 있습니다.
    """

    def __init__(self, on_sleep: Optional[Callable[[float], None]] = None):
        self._local = threading.local()
        self._lock = threading.Lock()
        self.sleeps: List[float] = []
        self.on_sleep = on_sleep

    def monotonic(self) -> float:
        return getattr(self._local, "now", 0.0)

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        if cancel is not None and cancel.is_set():
            return False
        self._local.now = self.monotonic() + seconds
        with self._lock:
            self.sleeps.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(seconds)
        return not (cancel is not None and cancel.is_set())


# =============================================================================
# 픽스처
# =============================================================================


@pytest.fixture
def fake_remote():
    return FakeRemote()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture(scope="session")
def catalog():
    return PermissionCatalog.default()


@pytest.fixture
def fast_config():
    """테스트용 설정 (지터 없음, 짧은 타임아웃)"""
    return ReconcileConfig(
        timeout=60.0,
        poll_interval=5.0,
        jitter_ratio=0.0,
        max_in_flight=3,
        retry=RetryConfig(max_retries=2, base_delay=0.5, max_delay=2.0, jitter=False),
    )


@pytest.fixture
def reconciler(catalog, fake_remote, fast_config, fake_clock):
    return Reconciler(catalog, fake_remote, fast_config, fake_clock)


@pytest.fixture
def aws_account():
    return CloudAccount(cloud="AWS", native_id="123456789012", name="test-account")


@pytest.fixture
def cnp():
    """CLOUD_NATIVE_PROTECTION (BASIC, us-east-2)"""
    return Feature(FeatureName.CLOUD_NATIVE_PROTECTION, ("BASIC",), ("us-east-2",))
