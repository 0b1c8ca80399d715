"""
onboarding/artifacts/matcher.py - 아티팩트 매칭

role key 단위 아티팩트 요구사항과 호출자가 제공한 아티팩트 바인딩을
(role key, 종류) 키로 매칭합니다.

    - 이름 패턴이 있는 요구사항: 패턴을 만족하는 바인딩만 매칭
      (불만족 바인딩은 rejected로 보고되고 요구사항은 missing 유지)
    - 이름 패턴이 없는 요구사항: 키만 맞으면 매칭, unverified로 경고
    - 어떤 요구사항에도 해당하지 않는 바인딩은 extra (정보성, 오류 아님)

순수 집합 연산이며 matched/extra는 role key 그룹핑 외의 순서를 보장하지 않습니다.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from onboarding.types import ArtifactBinding, ArtifactRequirement, RoleKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RejectedBinding:
    """이름 패턴을 만족하지 못한 바인딩"""

    binding: ArtifactBinding
    requirement: ArtifactRequirement

    @property
    def reason(self) -> str:
        return f"{self.binding.name} 이(가) 패턴 {self.requirement.pattern} 과 맞지 않음"


@dataclass
class MatchResult:
    """매칭 결과

    Attributes:
        matched: role key별 매칭된 바인딩
        missing: 매칭 바인딩이 없는 요구사항 (준비 완료를 막는 조건)
        extra: 요구되지 않은 바인딩
        unverified: 패턴 없이 키만으로 매칭된 바인딩
        rejected: 키는 맞지만 이름 패턴을 만족하지 못한 바인딩
    """

    matched: dict[RoleKey, list[ArtifactBinding]] = field(default_factory=dict)
    missing: list[ArtifactRequirement] = field(default_factory=list)
    extra: list[ArtifactBinding] = field(default_factory=list)
    unverified: list[ArtifactBinding] = field(default_factory=list)
    rejected: list[RejectedBinding] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing

    @property
    def matched_count(self) -> int:
        return sum(len(v) for v in self.matched.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "matched": {k: [b.to_dict() for b in v] for k, v in sorted(self.matched.items())},
            "missing": [r.to_dict() for r in self.missing],
            "extra": [b.to_dict() for b in self.extra],
            "unverified": [b.to_dict() for b in self.unverified],
            "rejected": [{**r.binding.to_dict(), "reason": r.reason} for r in self.rejected],
        }


def match(requirements: Iterable[ArtifactRequirement], bindings: Iterable[ArtifactBinding]) -> MatchResult:
    """요구사항과 바인딩 매칭

    같은 (role key, 종류)의 요구사항이 여러 개면 첫 번째만 사용합니다.
    """
    unique: dict[tuple, ArtifactRequirement] = {}
    for requirement in requirements:
        unique.setdefault(requirement.key, requirement)

    by_key: dict[tuple, list[ArtifactBinding]] = {}
    bindings = list(dict.fromkeys(bindings))
    for binding in bindings:
        by_key.setdefault(binding.key, []).append(binding)

    result = MatchResult()
    for key, requirement in unique.items():
        candidates = by_key.get(key, [])
        if requirement.pattern is None:
            accepted = candidates
            for binding in candidates:
                logger.warning(f"[{requirement.role_key}/{requirement.kind.value}] 이름 패턴 없음, 검증 없이 매칭: {binding.identifier}")
                result.unverified.append(binding)
        else:
            accepted = []
            for binding in candidates:
                if requirement.pattern.matches(binding.identifier):
                    accepted.append(binding)
                else:
                    rejected = RejectedBinding(binding, requirement)
                    logger.warning(f"[{requirement.role_key}/{requirement.kind.value}] {rejected.reason}")
                    result.rejected.append(rejected)

        if accepted:
            result.matched.setdefault(requirement.role_key, []).extend(accepted)
        else:
            result.missing.append(requirement)

    for binding in bindings:
        if binding.key not in unique:
            logger.info(f"[{binding.role_key}/{binding.kind.value}] 요구되지 않은 아티팩트: {binding.identifier}")
            result.extra.append(binding)

    return result
