"""
tests/cli/test_app.py - CLI 엔트리포인트 테스트

Tests cover:
- 버전/도움말
- permissions / artifacts 카탈로그 명령어
- plan / match 상태 파일 명령어
- reconcile 실행 (원격 플레인은 FakeRemote로 대체)
"""

import json
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from cli.app import cli
from onboarding.config import get_version
from onboarding.state import load_state
from onboarding.types import FeatureName

STATE = {
    "account": {"cloud": "AWS", "native_id": "123456789012", "name": "prod"},
    "current": [{"name": "RDS_PROTECTION", "permission_groups": ["BASIC"], "regions": ["us-east-2"]}],
    "desired": [
        {"name": "CLOUD_NATIVE_PROTECTION", "permission_groups": ["BASIC"], "regions": ["us-east-2"]},
        {"name": "EXOCOMPUTE", "permission_groups": ["BASIC"], "regions": ["us-east-2"]},
    ],
    "bindings": [
        {"role_key": "CROSSACCOUNT", "kind": "role", "identifier": "arn:aws:iam::123456789012:role/rubrik"},
    ],
}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def state_file(tmp_path):
    def write(data=None):
        path = tmp_path / "state.yaml"
        path.write_text(yaml.safe_dump(data or STATE), encoding="utf-8")
        return path

    return write


# =============================================================================
# CLI Group Tests
# =============================================================================


class TestCLI:
    """CLI 그룹 테스트"""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert get_version() in result.output
        assert "onboard" in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("permissions", "artifacts", "plan", "match", "reconcile"):
            assert command in result.output


# =============================================================================
# 카탈로그 명령어
# =============================================================================


class TestPermissionsCommand:
    """permissions 명령어 테스트"""

    def test_json(self, runner):
        result = runner.invoke(cli, ["permissions", "AWS", "EXOCOMPUTE", "-g", "BASIC", "-g", "RSC_MANAGED_CLUSTER", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["groups"] == ["BASIC", "RSC_MANAGED_CLUSTER"]
        assert len(data["fingerprint"]) == 64

    def test_policy_document(self, runner):
        result = runner.invoke(
            cli, ["permissions", "aws", "cloud-native-protection", "--artifact", "CROSSACCOUNT", "--json"]
        )

        assert result.exit_code == 0
        document = json.loads(result.stdout)["policy_document"]
        assert document["Version"] == "2012-10-17"

    def test_table_output(self, runner):
        result = runner.invoke(cli, ["permissions", "AWS", "CLOUD_DISCOVERY"])

        assert result.exit_code == 0
        assert "CROSSACCOUNT" in result.stdout

    def test_missing_baseline(self, runner):
        """검증 오류는 종료 코드 2"""
        result = runner.invoke(cli, ["permissions", "AWS", "EXOCOMPUTE", "-g", "RSC_MANAGED_CLUSTER"])

        assert result.exit_code == 2
        assert "BASIC" in result.stdout

    def test_unknown_artifact(self, runner):
        result = runner.invoke(cli, ["permissions", "AWS", "CLOUD_DISCOVERY", "--artifact", "NOPE"])
        assert result.exit_code == 2


class TestArtifactsCommand:
    """artifacts 명령어 테스트"""

    def test_json(self, runner):
        result = runner.invoke(cli, ["artifacts", "AWS", "EXOCOMPUTE", "CLOUD_NATIVE_PROTECTION", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [(r["role_key"], r["kind"]) for r in data] == [
            ("CROSSACCOUNT", "role"),
            ("EXOCOMPUTE_EKS_MASTERNODE", "role"),
            ("EXOCOMPUTE_EKS_WORKERNODE", "instance-profile"),
            ("EXOCOMPUTE_EKS_WORKERNODE", "role"),
        ]

    def test_unsupported(self, runner):
        result = runner.invoke(cli, ["artifacts", "GCP", "RDS_PROTECTION"])
        assert result.exit_code == 2

    def test_custom_catalog_dir(self, runner, tmp_path):
        """--catalog-dir에 테이블이 없으면 오류"""
        result = runner.invoke(cli, ["--catalog-dir", str(tmp_path), "artifacts", "AWS", "EXOCOMPUTE"])
        assert result.exit_code == 2


# =============================================================================
# 상태 파일 명령어
# =============================================================================


class TestPlanCommand:
    """plan 명령어 테스트"""

    def test_json(self, runner, state_file):
        result = runner.invoke(cli, ["plan", str(state_file()), "--json"])

        assert result.exit_code == 0
        changes = json.loads(result.stdout)
        assert [(c["kind"], c["name"]) for c in changes] == [
            ("DISABLE", "RDS_PROTECTION"),
            ("ENABLE", "CLOUD_NATIVE_PROTECTION"),
            ("ENABLE", "EXOCOMPUTE"),
        ]

    def test_table(self, runner, state_file):
        result = runner.invoke(cli, ["plan", str(state_file())])

        assert result.exit_code == 0
        assert "DISABLE" in result.stdout

    def test_no_changes(self, runner, state_file):
        data = {**STATE, "current": STATE["desired"]}
        result = runner.invoke(cli, ["plan", str(state_file(data))])

        assert result.exit_code == 0
        assert "변경 없음" in result.stdout

    def test_empty_groups_on_both_sides(self, runner, state_file):
        """current와 desired가 모두 빈 권한 그룹이면 변경 없음"""
        feature = {"name": "CLOUD_NATIVE_PROTECTION", "permission_groups": [], "regions": ["us-east-2"]}
        data = {**STATE, "current": [feature], "desired": [feature]}

        result = runner.invoke(cli, ["plan", str(state_file(data)), "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == []

    def test_invalid_groups(self, runner, state_file):
        data = {**STATE, "desired": [{"name": "EXOCOMPUTE", "permission_groups": ["RSC_MANAGED_CLUSTER"]}]}
        result = runner.invoke(cli, ["plan", str(state_file(data))])

        assert result.exit_code == 2

    def test_invalid_state_file(self, runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("account: [", encoding="utf-8")

        result = runner.invoke(cli, ["plan", str(path)])

        assert result.exit_code == 2


class TestMatchCommand:
    """match 명령어 테스트"""

    def test_missing_exit_code(self, runner, state_file):
        """누락된 아티팩트가 있으면 종료 코드 1"""
        result = runner.invoke(cli, ["match", str(state_file()), "--json"])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert "EXOCOMPUTE_EKS_MASTERNODE" in [r["role_key"] for r in data["missing"]]
        assert data["unverified"][0]["role_key"] == "CROSSACCOUNT"

    def test_complete(self, runner, state_file):
        data = {**STATE, "desired": [STATE["desired"][0]]}
        result = runner.invoke(cli, ["match", str(state_file(data))])

        assert result.exit_code == 0

    def test_iam_profile(self, runner, state_file):
        """--profile이면 IAM에서 바인딩 조회"""
        with patch("cli.app._iam_bindings", return_value=[]) as iam_bindings:
            result = runner.invoke(cli, ["match", str(state_file()), "-p", "prod", "--json"])

        assert result.exit_code == 1
        assert iam_bindings.call_args.args[0] == "prod"


class TestReconcileCommand:
    """reconcile 명령어 테스트"""

    ARGS = ["--url", "https://rsc.example.com/api", "--poll-interval", "0.01", "--json"]

    def test_success(self, runner, state_file, fake_remote):
        data = {**STATE, "bindings": None}
        with patch("onboarding.remote.http.HttpRemoteOperations", return_value=fake_remote):
            result = runner.invoke(cli, ["reconcile", str(state_file(data)), *self.ARGS])

        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["overall_status"] == "SUCCEEDED"
        assert [f["name"] for f in report["features"]] == ["RDS_PROTECTION", "CLOUD_NATIVE_PROTECTION", "EXOCOMPUTE"]

    def test_partial_failure(self, runner, state_file, fake_remote):
        fake_remote.reject("EXOCOMPUTE", "QuotaExceeded")
        data = {**STATE, "bindings": None}
        with patch("onboarding.remote.http.HttpRemoteOperations", return_value=fake_remote):
            result = runner.invoke(cli, ["reconcile", str(state_file(data)), *self.ARGS])

        assert result.exit_code == 1
        assert json.loads(result.stdout)["overall_status"] == "PARTIAL_FAILURE"

    def test_artifacts_missing(self, runner, state_file, fake_remote):
        """바인딩이 부족하면 해당 기능 실패"""
        with patch("onboarding.remote.http.HttpRemoteOperations", return_value=fake_remote):
            result = runner.invoke(cli, ["reconcile", str(state_file()), *self.ARGS])

        assert result.exit_code == 1
        report = json.loads(result.stdout)
        exo = next(f for f in report["features"] if f["name"] == "EXOCOMPUTE")
        assert exo["reason"] == "ArtifactsMissing"

    def test_validation_failure(self, runner, state_file, fake_remote):
        data = {**STATE, "desired": [{"name": "EXOCOMPUTE", "permission_groups": ["BASIC", "BASIC"]}]}
        with patch("onboarding.remote.http.HttpRemoteOperations", return_value=fake_remote):
            result = runner.invoke(cli, ["reconcile", str(state_file(data)), *self.ARGS])

        assert result.exit_code == 2
        assert json.loads(result.stdout)["error"]["error_type"] == "DuplicateGroup"
        assert fake_remote.requests == []

    def test_save(self, runner, state_file, fake_remote):
        """--save는 반영된 상태를 current로 저장"""
        path = state_file({**STATE, "bindings": None})
        with patch("onboarding.remote.http.HttpRemoteOperations", return_value=fake_remote):
            result = runner.invoke(cli, ["reconcile", str(path), *self.ARGS, "--save"])

        assert result.exit_code == 0
        saved = load_state(path)
        assert {f.name for f in saved.account.features} == {FeatureName.CLOUD_NATIVE_PROTECTION, FeatureName.EXOCOMPUTE}

    def test_requires_url(self, runner, state_file):
        with patch("cli.app.settings") as settings:
            settings.REMOTE_URL = ""
            result = runner.invoke(cli, ["reconcile", str(state_file())])

        assert result.exit_code == 2

    def test_invalid_option(self, runner, state_file):
        result = runner.invoke(cli, ["reconcile", str(state_file()), "--url", "https://x", "--max-in-flight", "0"])
        assert result.exit_code == 2

    def test_table_output(self, runner, state_file, fake_remote):
        data = {**STATE, "bindings": None}
        with patch("onboarding.remote.http.HttpRemoteOperations", return_value=fake_remote):
            result = runner.invoke(
                cli, ["reconcile", str(state_file(data)), "--url", "https://x", "--poll-interval", "0.01"]
            )

        assert result.exit_code == 0
        assert "SUCCEEDED" in result.stdout


class TestMainEntry:
    """main.py 진입점 테스트"""

    def test_delegates_to_cli(self):
        import main

        with patch.object(main, "cli") as cli_mock:
            main.main()

        cli_mock.assert_called_once_with(prog_name="onboard")
