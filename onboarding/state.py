"""onboarding/state.py - 상태 파일 로더.

CLI가 사용하는 YAML 상태 파일을 계정/기능/바인딩으로 변환합니다.

형식:
    account:
      cloud: AWS
      native_id: "123456789012"
      id: null                    # RSC 계정 ID (선택)
      name: prod
      cloud_type: STANDARD        # AWS 전용 (선택)
    current:                      # 마지막으로 알려진 원격 상태
      - name: CLOUD_NATIVE_PROTECTION
        permission_groups: [BASIC]
        regions: [us-east-2]
    desired:                      # 원하는 상태
      - ...
    bindings:                     # 선택, 없으면 아티팩트 매칭 생략
      - {role_key: CROSSACCOUNT, kind: role, identifier: "arn:aws:iam::123456789012:role/rubrik"}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore[import-untyped]

from onboarding.config import settings
from onboarding.exceptions import ConfigError
from onboarding.types import ArtifactBinding, CloudAccount, Feature


@dataclass
class StateFile:
    """상태 파일 내용"""

    account: CloudAccount
    desired: list[Feature] = field(default_factory=list)
    bindings: list[ArtifactBinding] | None = None
    path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        account = self.account.to_dict()
        current = account.pop("features")
        data: dict[str, Any] = {
            "account": account,
            "current": current,
            "desired": [f.to_dict() for f in self.desired],
        }
        if self.bindings is not None:
            data["bindings"] = [b.to_dict() for b in self.bindings]
        return data


def parse_state(raw: Mapping[str, Any], source: str = "<memory>") -> StateFile:
    """딕셔너리를 StateFile로 변환

    Raises:
        ConfigError: 구조 오류 (필수 키 누락, 잘못된 타입)
        InvalidFeatureSpec: 잘못된 기능 블록
    """
    if not isinstance(raw, Mapping):
        raise ConfigError(source, "최상위는 매핑이어야 합니다")

    account_data = raw.get("account")
    if not isinstance(account_data, Mapping):
        raise ConfigError(f"{source}:account", "account 블록이 필요합니다")
    for key in ("cloud", "native_id"):
        if not account_data.get(key):
            raise ConfigError(f"{source}:account.{key}", "필수 값 누락")

    current = [Feature.from_dict(f) for f in _feature_list(raw, "current", source)]
    desired = [Feature.from_dict(f) for f in _feature_list(raw, "desired", source)]

    try:
        account = CloudAccount(
            cloud=account_data["cloud"],
            native_id=str(account_data["native_id"]),
            id=account_data.get("id"),
            name=account_data.get("name"),
            cloud_type=account_data.get("cloud_type") or settings.DEFAULT_CLOUD_TYPE,
            features=tuple(current),
        )
    except ValueError as e:
        raise ConfigError(f"{source}:account", str(e), cause=e) from e

    bindings = None
    if raw.get("bindings") is not None:
        try:
            bindings = [ArtifactBinding.from_dict(b) for b in raw["bindings"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"{source}:bindings", f"잘못된 바인딩: {e}", cause=e) from e

    return StateFile(account=account, desired=desired, bindings=bindings)


def _feature_list(raw: Mapping[str, Any], key: str, source: str) -> list[Mapping[str, Any]]:
    value = raw.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, Mapping) for v in value):
        raise ConfigError(f"{source}:{key}", "기능 목록이어야 합니다")
    return value


def load_state(path: str | Path) -> StateFile:
    """YAML 상태 파일 로드

    Raises:
        ConfigError: 파일을 읽을 수 없거나 구조가 잘못됨
        InvalidFeatureSpec: 잘못된 기능 블록
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(str(path), "상태 파일을 읽을 수 없습니다", cause=e) from e

    state = parse_state(raw, source=str(path))
    state.path = path
    return state


def save_state(state: StateFile, path: str | Path | None = None) -> Path:
    """상태 파일 저장 (재조정 후 current 갱신용)"""
    target = Path(path) if path is not None else state.path
    if target is None:
        raise ConfigError("path", "저장할 경로가 없습니다")
    with target.open("w", encoding="utf-8") as f:
        yaml.safe_dump(state.to_dict(), f, sort_keys=False, allow_unicode=True)
    return target
