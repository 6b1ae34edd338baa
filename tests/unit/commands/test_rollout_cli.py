"""Tests for the awsrollout command line interface."""

from unittest.mock import Mock, patch

import pytest
import yaml
from typer.testing import CliRunner

from src.awsrollout.cli import app
from src.awsrollout.rollout.enumerator import EnumerationResult
from src.awsrollout.rollout.exceptions import PlanValidationError
from src.awsrollout.rollout.models import DeploymentOutcome, DeploymentStatus, Target
from src.awsrollout.rollout.reporting import ReportingSink, RunLogReader
from tests.fixtures.rollout import ScriptedProvider, client_error, make_contexts, make_targets

TARGETS = make_targets(["111111111111"], ["eu-west-1", "us-east-1"])

PLAN = {
    "name": "baseline",
    "template_url": "https://example-bucket.s3.amazonaws.com/baseline.yaml",
    "parameters": {"BucketName": "logs-{account_id}-{region}"},
}


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Isolated configuration file, run log and environment."""
    config_file = tmp_path / "config.yaml"
    run_log = tmp_path / "runs" / "outcomes.csv"
    monkeypatch.setattr("src.awsrollout.utils.config.CONFIG_FILE_YAML", config_file)
    for name in ["AWSROLLOUT_CONCURRENCY", "AWSROLLOUT_ROLE_NAME"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWSROLLOUT_RUN_LOG", str(run_log))
    monkeypatch.setenv("AWSROLLOUT_WAVE_DELAY", "0")
    monkeypatch.setenv("AWSROLLOUT_MAX_RETRIES", "0")
    return tmp_path


@pytest.fixture
def plan_file(workspace):
    """Valid plan file."""
    path = workspace / "plan.yaml"
    path.write_text(yaml.safe_dump(PLAN))
    return path


@pytest.fixture
def mock_enumerator():
    """Enumerator returning two targets in one account."""
    enumerator = Mock()
    enumerator.enumerate.return_value = EnumerationResult(
        targets=list(TARGETS),
        contexts=make_contexts(TARGETS),
        excluded_accounts={"999999999999": "AccessDenied when assuming role"},
    )
    return enumerator


@pytest.fixture
def deploy_mocks(mock_enumerator):
    """Patch the AWS-facing collaborators of the deploy command."""
    provider = ScriptedProvider()
    with patch("src.awsrollout.commands.deploy.configure_logging"), patch(
        "src.awsrollout.commands.deploy.create_client_manager"
    ) as mock_create, patch(
        "src.awsrollout.commands.deploy.build_enumerator", return_value=mock_enumerator
    ), patch(
        "src.awsrollout.commands.deploy.TemplateInspector"
    ) as mock_inspector, patch(
        "src.awsrollout.commands.deploy.CloudFormationProvider", return_value=provider
    ):
        mock_inspector.return_value.resolve_parameters.return_value = dict(PLAN["parameters"])
        yield {
            "provider": provider,
            "create_client_manager": mock_create,
            "inspector": mock_inspector,
            "enumerator": mock_enumerator,
        }


class TestVersionCommand:
    """Test the version command."""

    def test_version(self, runner):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "awsrollout version:" in result.stdout


class TestDeployCommand:
    """Test the deploy command."""

    def test_deploy_success(self, runner, plan_file, workspace, deploy_mocks):
        result = runner.invoke(app, ["deploy", str(plan_file)])

        assert result.exit_code == 0, result.stdout
        assert "Rollout Summary" in result.stdout
        assert "excluded" in result.stdout
        provider = deploy_mocks["provider"]
        assert sorted(r.target for r in provider.requests) == sorted(TARGETS)
        assert provider.requests[0].tags["awsrollout:plan"] == "baseline"
        rows = RunLogReader(workspace / "runs" / "outcomes.csv").read_rows()
        assert [row["status"] for row in rows] == ["Succeeded", "Succeeded"]

    def test_dry_run_does_not_deploy(self, runner, plan_file, deploy_mocks):
        result = runner.invoke(app, ["deploy", str(plan_file), "--dry-run"])

        assert result.exit_code == 0, result.stdout
        assert "Dry run" in result.stdout
        assert deploy_mocks["provider"].requests == []

    def test_all_targets_failed_exits_with_error(self, runner, plan_file, deploy_mocks):
        deploy_mocks["provider"].default = client_error("LimitExceededException", "quota")

        result = runner.invoke(app, ["deploy", str(plan_file)])

        assert result.exit_code == 1
        assert len(deploy_mocks["provider"].requests) == 2

    def test_partial_failure_exits_cleanly(self, runner, plan_file, deploy_mocks):
        deploy_mocks["provider"].scripts = {TARGETS[0]: [client_error("AccessDenied", "SCP")]}

        result = runner.invoke(app, ["deploy", str(plan_file)])

        assert result.exit_code == 0
        assert "Blocked" in result.stdout
        assert "Review failures with" in result.stdout

    def test_all_skipped_exits_cleanly(self, runner, plan_file, deploy_mocks):
        deploy_mocks["provider"].default = client_error("OptInRequired", "not enabled")

        result = runner.invoke(app, ["deploy", str(plan_file)])

        assert result.exit_code == 0

    def test_authentication_failure_aborts(self, runner, plan_file, deploy_mocks):
        deploy_mocks["provider"].default = client_error("ExpiredToken", "token expired")

        result = runner.invoke(app, ["deploy", str(plan_file), "--concurrency", "1"])

        assert result.exit_code == 1
        assert "Authentication failed" in result.stdout
        assert len(deploy_mocks["provider"].requests) == 1

    def test_watch_runs_multiple_cycles(self, runner, plan_file, workspace, deploy_mocks):
        result = runner.invoke(
            app, ["deploy", str(plan_file), "--watch", "--cycles", "2", "--interval", "0"]
        )

        assert result.exit_code == 0, result.stdout
        assert deploy_mocks["enumerator"].enumerate.call_count == 2
        runs = RunLogReader(workspace / "runs" / "outcomes.csv").list_runs()
        assert len(runs) == 2

    def test_missing_template_parameter(self, runner, plan_file, deploy_mocks):
        deploy_mocks["inspector"].return_value.resolve_parameters.side_effect = (
            PlanValidationError(["Missing value for template parameter 'Env'"], "baseline")
        )

        result = runner.invoke(app, ["deploy", str(plan_file)])

        assert result.exit_code == 1
        assert "Env" in result.stdout
        assert deploy_mocks["provider"].requests == []

    def test_invalid_plan(self, runner, workspace, deploy_mocks):
        path = workspace / "bad.yaml"
        path.write_text(yaml.safe_dump({**PLAN, "concurrency": 0}))

        result = runner.invoke(app, ["deploy", str(path)])

        assert result.exit_code == 1
        assert "invalid" in result.stdout
        deploy_mocks["create_client_manager"].assert_not_called()

    def test_missing_plan_file(self, runner, workspace, deploy_mocks):
        result = runner.invoke(app, ["deploy", str(workspace / "missing.yaml")])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_invalid_concurrency_option(self, runner, plan_file, deploy_mocks):
        result = runner.invoke(app, ["deploy", str(plan_file), "--concurrency", "0"])

        assert result.exit_code == 1
        deploy_mocks["create_client_manager"].assert_not_called()

    def test_invalid_classifier_pattern_in_config(self, runner, plan_file, workspace, deploy_mocks):
        config = {"rollout": {"classifier": {"extra_patterns": {"QuotaExceeded": ["quota(("]}}}}
        (workspace / "config.yaml").write_text(yaml.safe_dump(config))

        result = runner.invoke(app, ["deploy", str(plan_file)])

        assert result.exit_code == 1
        assert "invalid pattern" in result.stdout
        deploy_mocks["create_client_manager"].assert_not_called()


class TestTargetsCommand:
    """Test the targets command."""

    def test_list_targets(self, runner, plan_file, mock_enumerator):
        with patch("src.awsrollout.commands.targets.configure_logging"), patch(
            "src.awsrollout.commands.targets.create_client_manager"
        ), patch(
            "src.awsrollout.commands.targets.build_enumerator", return_value=mock_enumerator
        ):
            result = runner.invoke(app, ["targets", str(plan_file)])

        assert result.exit_code == 0, result.stdout
        assert "111111111111" in result.stdout
        assert "2 targets across 1 accounts" in result.stdout
        assert "999999999999" in result.stdout

    def test_no_targets(self, runner, plan_file, mock_enumerator):
        mock_enumerator.enumerate.return_value = EnumerationResult()
        with patch("src.awsrollout.commands.targets.configure_logging"), patch(
            "src.awsrollout.commands.targets.create_client_manager"
        ), patch(
            "src.awsrollout.commands.targets.build_enumerator", return_value=mock_enumerator
        ):
            result = runner.invoke(app, ["targets", str(plan_file)])

        assert result.exit_code == 0
        assert "No eligible targets" in result.stdout


class TestHistoryCommand:
    """Test the history command."""

    def record_run(self, workspace, run_id, status):
        sink = ReportingSink(run_log_path=workspace / "runs" / "outcomes.csv", run_id=run_id)
        sink.record(
            DeploymentOutcome(
                target=Target("111111111111", "us-east-1"),
                success=status == DeploymentStatus.SUCCEEDED,
                status=status,
                reason=status.value,
                attempts=1,
            )
        )
        sink.persist()

    def test_no_runs(self, runner, workspace):
        result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "No runs recorded" in result.stdout

    def test_list_runs(self, runner, workspace):
        self.record_run(workspace, "run-a", DeploymentStatus.SUCCEEDED)
        self.record_run(workspace, "run-b", DeploymentStatus.FAILED)

        result = runner.invoke(app, ["history"])

        assert result.exit_code == 0
        assert "run-a" in result.stdout
        assert "run-b" in result.stdout

    def test_show_single_run(self, runner, workspace):
        self.record_run(workspace, "run-a", DeploymentStatus.BLOCKED)

        result = runner.invoke(app, ["history", "--run-id", "run-a"])

        assert result.exit_code == 0
        assert "Blocked" in result.stdout

    def test_unknown_run(self, runner, workspace):
        self.record_run(workspace, "run-a", DeploymentStatus.SUCCEEDED)

        result = runner.invoke(app, ["history", "--run-id", "run-z"])

        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestConfigCommands:
    """Test the config subcommands."""

    def test_set_and_show(self, runner, workspace):
        result = runner.invoke(app, ["config", "set", "rollout.backoff.max_delay=120"])

        assert result.exit_code == 0
        saved = yaml.safe_load((workspace / "config.yaml").read_text())
        assert saved == {"rollout": {"backoff": {"max_delay": 120}}}

        result = runner.invoke(app, ["config", "show", "--section", "rollout", "--format", "json"])

        assert result.exit_code == 0
        assert '"max_delay": 120' in result.stdout

    def test_set_warns_about_invalid_rollout_config(self, runner, workspace):
        result = runner.invoke(app, ["config", "set", "rollout.concurrency=0"])

        assert result.exit_code == 0
        assert "now invalid" in result.stdout

    def test_set_requires_key_value(self, runner, workspace):
        result = runner.invoke(app, ["config", "set", "rollout.concurrency"])

        assert result.exit_code == 1

    def test_show_unknown_section(self, runner, workspace):
        result = runner.invoke(app, ["config", "show", "--section", "cache"])

        assert result.exit_code == 1

    def test_show_table(self, runner, workspace):
        result = runner.invoke(app, ["config", "show", "--section", "logging"])

        assert result.exit_code == 0
        assert "level" in result.stdout

    def test_path(self, runner, workspace):
        result = runner.invoke(app, ["config", "path"])

        assert result.exit_code == 0
        assert "File exists" in result.stdout

    def test_validate(self, runner, workspace):
        assert runner.invoke(app, ["config", "validate"]).exit_code == 0

        (workspace / "config.yaml").write_text(yaml.safe_dump({"rollout": {"concurrency": 0}}))

        result = runner.invoke(app, ["config", "validate"])

        assert result.exit_code == 1
        assert "concurrency" in result.stdout
