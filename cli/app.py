"""
cli/app.py - 메인 CLI 엔트리포인트

Click 기반의 CLI 애플리케이션 진입점입니다.

명령어 구조:
    onboard --version                               # 버전 표시
    onboard permissions AWS CLOUD_NATIVE_PROTECTION -g BASIC --artifact CROSSACCOUNT
    onboard artifacts AWS EXOCOMPUTE CLOUD_NATIVE_PROTECTION
    onboard plan state.yaml                         # 변경 계획 (제출 없음)
    onboard match state.yaml                        # 아티팩트 매칭
    onboard reconcile state.yaml --url URL          # 재조정 실행

종료 코드 (reconcile):
    0 = SUCCEEDED, 1 = PARTIAL_FAILURE, 2 = FAILED / 입력 오류

Usage:
    $ onboard plan examples/aws.yaml
    $ python -m cli.app reconcile state.yaml --url https://rsc.example.com/api --json
"""

import json
import logging
import sys
import threading
from pathlib import Path
from typing import NoReturn

# 프로젝트 루트를 sys.path에 추가 (onboarding 패키지 임포트를 위함)
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import click  # noqa: E402
from click import Context  # noqa: E402

from onboarding.config import ReconcileConfig, get_version, settings  # noqa: E402
from onboarding.exceptions import OnboardingError, format_error_for_user  # noqa: E402

# Keep lightweight, centralized logging config
# WARNING 레벨로 설정하여 INFO 로그가 명령 출력에 섞이지 않도록 함
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

VERSION = get_version()

# 입력/검증 오류 종료 코드
EXIT_INVALID = 2


def _fail(error: Exception) -> NoReturn:
    """오류 메시지 출력 후 종료"""
    from cli.console import print_error

    print_error(format_error_for_user(error))
    raise SystemExit(EXIT_INVALID)


def _load_state(path: str):
    from onboarding.state import load_state

    try:
        return load_state(path)
    except OnboardingError as e:
        _fail(e)


def _catalog(catalog_dir: str | None):
    from onboarding.catalog import PermissionCatalog, YamlCatalogSource

    try:
        if catalog_dir:
            return PermissionCatalog.from_source(YamlCatalogSource(catalog_dir))
        return PermissionCatalog.default()
    except OnboardingError as e:
        _fail(e)


def _iam_bindings(profile: str, account):
    """boto3 프로파일로 IAM 아티팩트 조회"""
    import boto3

    from onboarding.artifacts import IamArtifactSource

    try:
        return IamArtifactSource(boto3.Session(profile_name=profile)).list(account)
    except OnboardingError as e:
        _fail(e)


@click.group()
@click.version_option(VERSION, prog_name="onboard")
@click.option("-v", "--verbose", is_flag=True, help="디버그 로그 출력")
@click.option(
    "--catalog-dir",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="권한 카탈로그 YAML 디렉토리 (기본: 내장 테이블)",
)
@click.pass_context
def cli(ctx: Context, verbose: bool, catalog_dir: str | None) -> None:
    """onboard - 클라우드 계정 기능 재조정 CLI"""
    from cli.console import get_logger

    get_logger("onboarding", logging.DEBUG if verbose else logging.WARNING)

    ctx.ensure_object(dict)
    ctx.obj["catalog_dir"] = catalog_dir


# =============================================================================
# 카탈로그 명령어
# =============================================================================


@cli.command("permissions")
@click.argument("cloud")
@click.argument("feature")
@click.option("-g", "--group", "groups", multiple=True, help="권한 그룹 (다중 가능, 없으면 전체)")
@click.option("--artifact", default=None, help="IAM 정책 문서를 출력할 아티팩트 (AWS)")
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
@click.pass_context
def permissions_command(
    ctx: Context, cloud: str, feature: str, groups: tuple[str, ...], artifact: str | None, as_json: bool
) -> None:
    """권한 그룹 해석 결과

    \b
    Examples:
        onboard permissions AWS CLOUD_NATIVE_PROTECTION
        onboard permissions AWS EXOCOMPUTE -g BASIC -g RSC_MANAGED_CLUSTER
        onboard permissions AWS cloud-native-protection --artifact CROSSACCOUNT
    """
    from cli.console import console, print_fragment

    catalog = _catalog(ctx.obj["catalog_dir"])
    try:
        fragment = catalog.resolve(cloud, feature, list(groups))
        document = fragment.policy_document(artifact) if artifact else None
    except (OnboardingError, KeyError, ValueError) as e:
        _fail(e)

    if as_json:
        data = fragment.to_dict()
        if document is not None:
            data["policy_document"] = document
        click.echo(json.dumps(data, ensure_ascii=False, indent=2))
        return

    print_fragment(fragment)
    if document is not None:
        console.print_json(json.dumps(document))


@cli.command("artifacts")
@click.argument("cloud")
@click.argument("features", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
@click.pass_context
def artifacts_command(ctx: Context, cloud: str, features: tuple[str, ...], as_json: bool) -> None:
    """기능 집합이 요구하는 role key / instance profile key

    \b
    Examples:
        onboard artifacts AWS CLOUD_NATIVE_PROTECTION EXOCOMPUTE
    """
    from rich.table import Table

    from cli.console import console

    catalog = _catalog(ctx.obj["catalog_dir"])
    try:
        requirements = catalog.artifact_requirements(cloud, features)
    except OnboardingError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in requirements], ensure_ascii=False, indent=2))
        return

    table = Table(title="필요한 아티팩트", show_header=True)
    table.add_column("role key", style="cyan")
    table.add_column("종류")
    table.add_column("이름 패턴", style="dim")
    for requirement in requirements:
        table.add_row(requirement.role_key, requirement.kind.value, str(requirement.pattern or ""))
    console.print(table)


# =============================================================================
# 상태 파일 명령어
# =============================================================================


@cli.command("plan")
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
@click.pass_context
def plan_command(ctx: Context, state_file: str, as_json: bool) -> None:
    """current → desired 변경 계획 (원격 제출 없음)

    권한 그룹/리전 검증 후 ChangeSet을 출력합니다.
    """
    from cli.console import print_change_set
    from onboarding.diff import diff
    from onboarding.orchestrator import validate_desired

    state = _load_state(state_file)
    catalog = _catalog(ctx.obj["catalog_dir"])
    try:
        desired = validate_desired(catalog, state.account, state.desired)
        change_set = diff(state.account.features, desired)
    except OnboardingError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(change_set.to_list(), ensure_ascii=False, indent=2))
        return
    print_change_set(change_set)


@cli.command("match")
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-p", "--profile", default=None, help="IAM에서 아티팩트를 조회할 AWS 프로파일")
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
@click.pass_context
def match_command(ctx: Context, state_file: str, profile: str | None, as_json: bool) -> None:
    """desired 기능의 아티팩트 요구사항과 바인딩 매칭

    바인딩은 상태 파일의 bindings 또는 --profile로 조회한 IAM 리소스입니다.
    누락된 아티팩트가 있으면 종료 코드 1.
    """
    from cli.console import print_match_result
    from onboarding.artifacts import match

    state = _load_state(state_file)
    catalog = _catalog(ctx.obj["catalog_dir"])
    bindings = _iam_bindings(profile, state.account) if profile else (state.bindings or [])
    try:
        requirements = catalog.artifact_requirements(state.account.cloud, state.desired)
    except OnboardingError as e:
        _fail(e)

    result = match(requirements, bindings)
    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print_match_result(result)

    if result.missing:
        raise SystemExit(1)


@cli.command("reconcile")
@click.argument("state_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--url", default=lambda: settings.REMOTE_URL or None, help="원격 플레인 주소 (ONBOARD_REMOTE_URL)")
@click.option("--token", envvar="ONBOARD_TOKEN", default=None, help="Bearer 토큰 (ONBOARD_TOKEN)")
@click.option("--timeout", type=float, default=None, help="작업 1건당 최대 대기 시간 (초)")
@click.option("--poll-interval", type=float, default=None, help="상태 조회 간격 (초)")
@click.option("--max-in-flight", type=int, default=None, help="동시에 추적할 최대 작업 수")
@click.option("--delete-snapshots", is_flag=True, help="기능 비활성화 시 스냅샷 삭제")
@click.option("-p", "--profile", default=None, help="IAM에서 아티팩트를 조회할 AWS 프로파일")
@click.option("--save", is_flag=True, help="반영된 상태를 current로 상태 파일에 저장")
@click.option("--json", "as_json", is_flag=True, help="JSON 형식으로 출력")
@click.pass_context
def reconcile_command(
    ctx: Context,
    state_file: str,
    url: str | None,
    token: str | None,
    timeout: float | None,
    poll_interval: float | None,
    max_in_flight: int | None,
    delete_snapshots: bool,
    profile: str | None,
    save: bool,
    as_json: bool,
) -> None:
    """재조정 실행

    \b
    Examples:
        onboard reconcile state.yaml --url https://rsc.example.com/api
        onboard reconcile state.yaml --json --save
    """
    from cli.console import print_result, print_success, print_warning
    from onboarding.orchestrator import Reconciler
    from onboarding.remote.http import HttpRemoteOperations
    from onboarding.state import save_state

    if not url:
        raise click.UsageError("--url 또는 ONBOARD_REMOTE_URL이 필요합니다")

    overrides = {
        key: value
        for key, value in (("timeout", timeout), ("poll_interval", poll_interval), ("max_in_flight", max_in_flight))
        if value is not None
    }
    try:
        config = ReconcileConfig.from_settings(delete_snapshots=delete_snapshots, **overrides)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    state = _load_state(state_file)
    catalog = _catalog(ctx.obj["catalog_dir"])
    bindings = _iam_bindings(profile, state.account) if profile else state.bindings
    reconciler = Reconciler(catalog, HttpRemoteOperations(url, token), config)

    cancel = threading.Event()
    holder: dict = {}

    def run() -> None:
        try:
            holder["result"] = reconciler.reconcile(state.account, state.desired, bindings, cancel)
        except Exception as e:
            holder["error"] = e

    worker = threading.Thread(target=run, name="reconcile", daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        print_warning("취소 요청됨, 진행 중인 작업의 마지막 상태를 기다립니다...")
        cancel.set()
        worker.join()

    if "error" in holder:
        _fail(holder["error"])
    result = holder["result"]
    if as_json:
        click.echo(result.to_json())
    else:
        print_result(result)

    if save and result.error is None:
        path = save_state(state)
        if not as_json:
            print_success(f"상태 저장: {path}")

    raise SystemExit(result.exit_code)


if __name__ == "__main__":
    cli()
