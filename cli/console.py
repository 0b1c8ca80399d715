"""
cli/console.py - Rich 콘솔 유틸리티

일관된 콘솔 출력과 재조정 결과 렌더링을 위한 함수들
"""

import logging
import platform

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from onboarding.artifacts import MatchResult
from onboarding.catalog import PermissionFragment
from onboarding.diff import ChangeKind, ChangeSet
from onboarding.report import FeatureStatus, OverallStatus, ReconciliationResult

# botocore 노이즈 로그 제한
logging.getLogger("botocore.credentials").setLevel(logging.WARNING)
logging.getLogger("botocore.loaders").setLevel(logging.WARNING)
logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)


def get_console() -> Console:
    """Rich Console 인스턴스를 생성하고 반환합니다."""
    is_windows = platform.system().lower() == "windows"

    return Console(
        color_system="auto",
        highlight=False,
        soft_wrap=True,
        markup=True,
        emoji=not is_windows,
    )


# 전역 콘솔 인스턴스
console = get_console()


def get_logger(name: str = "onboarding", level: int = logging.WARNING) -> logging.Logger:
    """Rich 핸들러가 설정된 logger를 반환합니다.

    Args:
        name: logger 이름 (기본값: 라이브러리 패키지 logger)
        level: 로그 레벨

    Returns:
        logging.Logger: 설정된 logger 인스턴스
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 이미 핸들러가 설정되어 있으면 레벨만 갱신
    if logger.handlers:
        return logger

    handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger


# =============================================================================
# 표준 출력 스타일
# =============================================================================

SYMBOL_SUCCESS = "✓"
SYMBOL_ERROR = "✗"
SYMBOL_WARNING = "!"
SYMBOL_INFO = "•"


def print_success(message: str) -> None:
    """성공 메시지 출력 (초록색 체크마크)"""
    console.print(f"[green]{SYMBOL_SUCCESS} {message}[/green]")


def print_error(message: str) -> None:
    """에러 메시지 출력 (빨간색 X)"""
    console.print(f"[red]{SYMBOL_ERROR} {message}[/red]")


def print_warning(message: str) -> None:
    """경고 메시지 출력 (노란색 경고)"""
    console.print(f"[yellow]{SYMBOL_WARNING} {message}[/yellow]")


def print_info(message: str) -> None:
    """정보 메시지 출력 (파란색 정보)"""
    console.print(f"[blue]{SYMBOL_INFO} {message}[/blue]")


def print_header(title: str) -> None:
    """섹션 헤더 출력"""
    console.print()
    console.print(f"[bold underline cyan]{title}[/bold underline cyan]")
    console.print()


# =============================================================================
# 렌더링
# =============================================================================

CHANGE_STYLES = {
    ChangeKind.DISABLE: "red",
    ChangeKind.ENABLE: "green",
    ChangeKind.UPDATE: "yellow",
}

STATUS_STYLES = {
    FeatureStatus.SUCCEEDED: "green",
    FeatureStatus.FAILED: "red",
    FeatureStatus.SKIPPED: "dim",
    FeatureStatus.TIMED_OUT: "yellow",
    FeatureStatus.UNKNOWN: "magenta",
}

OVERALL_STYLES = {
    OverallStatus.SUCCEEDED: "green",
    OverallStatus.PARTIAL_FAILURE: "yellow",
    OverallStatus.FAILED: "red",
}


def print_change_set(change_set: ChangeSet, title: str = "변경 계획") -> None:
    """ChangeSet 테이블 출력"""
    if change_set.is_empty:
        print_success("변경 없음")
        return

    table = Table(title=title, show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("변경", style="bold")
    table.add_column("기능", style="cyan")
    table.add_column("필드")

    for i, change in enumerate(change_set, 1):
        style = CHANGE_STYLES[change.kind]
        fields = ", ".join(f.value for f in change.changed_fields)
        table.add_row(str(i), f"[{style}]{change.kind.value}[/{style}]", change.name.value, fields)

    console.print(table)


def print_fragment(fragment: PermissionFragment) -> None:
    """권한 조각 출력"""
    print_header(f"{fragment.cloud.value} / {fragment.feature.value}")
    console.print(f"그룹: {', '.join(fragment.groups)}")
    console.print(f"카탈로그 버전: {fragment.version}")
    console.print(f"fingerprint: [dim]{fragment.fingerprint}[/dim]")

    table = Table(show_header=True)
    table.add_column("아티팩트", style="cyan")
    table.add_column("액션")
    table.add_column("관리형 정책", style="dim")
    for statement in fragment.statements:
        table.add_row(statement.artifact, "\n".join(statement.actions), "\n".join(statement.managed_policies))
    console.print(table)


def print_match_result(result: MatchResult) -> None:
    """아티팩트 매칭 결과 출력"""
    table = Table(title="아티팩트 매칭", show_header=True)
    table.add_column("role key", style="cyan")
    table.add_column("종류")
    table.add_column("상태")
    table.add_column("식별자", style="dim")

    unverified = set(result.unverified)
    for role_key, bindings in sorted(result.matched.items()):
        for binding in bindings:
            state = "[yellow]미검증[/yellow]" if binding in unverified else "[green]매칭[/green]"
            table.add_row(role_key, binding.kind.value, state, binding.identifier)
    for requirement in result.missing:
        pattern = str(requirement.pattern) if requirement.pattern else ""
        table.add_row(requirement.role_key, requirement.kind.value, "[red]누락[/red]", pattern)
    for rejected in result.rejected:
        table.add_row(
            rejected.binding.role_key, rejected.binding.kind.value, "[red]패턴 불일치[/red]", rejected.binding.identifier
        )
    for binding in result.extra:
        table.add_row(binding.role_key, binding.kind.value, "[blue]추가[/blue]", binding.identifier)

    console.print(table)


def print_result(result: ReconciliationResult) -> None:
    """재조정 결과 출력"""
    style = OVERALL_STYLES[result.overall_status]
    console.print(f"계정 {result.account_id}: [{style}]{result.overall_status.value}[/{style}]")

    if result.error is not None:
        print_error(str(result.error))
        return

    if result.features:
        table = Table(show_header=True)
        table.add_column("기능", style="cyan")
        table.add_column("변경")
        table.add_column("상태")
        table.add_column("사유")
        table.add_column("작업", style="dim")
        for outcome in result.features:
            status_style = STATUS_STYLES[outcome.status]
            reason = outcome.reason or ""
            if outcome.detail:
                reason = f"{reason}: {outcome.detail}" if reason else outcome.detail
            operations = "\n".join(f"{op.kind.value} {op.operation_id} {op.status.value}" for op in outcome.operations)
            table.add_row(
                outcome.name.value,
                outcome.change.value if outcome.change else "-",
                f"[{status_style}]{outcome.status.value}[/{status_style}]",
                reason,
                operations,
            )
        console.print(table)

    if result.artifacts is not None:
        for requirement in result.artifacts.missing:
            print_error(f"누락된 아티팩트: {requirement.role_key} ({requirement.kind.value})")
        for binding in result.artifacts.unverified:
            print_warning(f"미검증 아티팩트: {binding.identifier}")
        for binding in result.artifacts.extra:
            print_info(f"요구되지 않은 아티팩트: {binding.identifier}")
