"""
onboarding/remote - 원격 컨트롤 플레인 어댑터
"""

from onboarding.remote.base import REMOTE_STATE_MAP, RemoteOperations, normalize_state

__all__ = [
    "REMOTE_STATE_MAP",
    "RemoteOperations",
    "normalize_state",
]
