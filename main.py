"""
main.py - onboard 실행 진입점

Usage:
    $ python main.py plan state.yaml
    $ python main.py reconcile state.yaml --url https://rsc.example.com/api --json
"""

import sys
from pathlib import Path

# 설치 없이 저장소 루트에서 실행할 때 onboarding/cli 패키지를 찾기 위함
_root = str(Path(__file__).resolve().parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

from cli.app import cli  # noqa: E402


def main() -> None:
    """onboard CLI 실행 (cli.app:cli 위임)"""
    cli(prog_name="onboard")


if __name__ == "__main__":
    main()
