"""
onboarding/artifacts - 아티팩트 매칭 및 조회
"""

from onboarding.artifacts.matcher import MatchResult, RejectedBinding, match
from onboarding.artifacts.source import (
    IamArtifactSource,
    IdentityArtifactSource,
    StaticArtifactSource,
    get_client,
)

__all__ = [
    "IamArtifactSource",
    "IdentityArtifactSource",
    "MatchResult",
    "RejectedBinding",
    "StaticArtifactSource",
    "get_client",
    "match",
]
