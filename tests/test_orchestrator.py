"""Tests for orchestrator.py module."""

import os
import stat
from unittest.mock import MagicMock, patch

import pytest
from pulumi import automation as auto

from omes_infra import orchestrator
from omes_infra.config import RunConfig, RunSettings
from omes_infra.exceptions import ConfigurationError, DependencyNotReadyError, ProvisioningError


class _CommandResult:
    """Stand-in for the engine's command result."""

    def __init__(self, stderr):
        self.code = 255
        self.stdout = ""
        self.stderr = stderr

    def __str__(self):
        return f"\n code: {self.code}\n stdout: {self.stdout}\n stderr: {self.stderr}\n"


def _command_error(stderr):
    return auto.CommandError(_CommandResult(stderr))


@pytest.fixture
def settings(tmp_path):
    return RunSettings(project="omes-infra", stack="perf", work_dir=tmp_path, config_file=tmp_path / "omes.yaml")


@pytest.fixture
def run_config(config_document):
    config_document["stack_config"] = {"aws:region": "us-west-2"}
    return RunConfig.model_validate(config_document)


@pytest.fixture
def mock_stack():
    """Mock Automation API stack selection and tool checks."""
    with (
        patch("omes_infra.orchestrator.auto.create_or_select_stack") as mock_select,
        patch("omes_infra.orchestrator.require_command") as mock_require,
    ):
        stack = MagicMock()
        stack.up.return_value.summary.resource_changes = {"create": 12}
        stack.preview.return_value.change_summary = {"same": 3}
        mock_select.return_value = stack
        stack.select = mock_select
        stack.require = mock_require
        yield stack


class TestEngineErrors:
    """Tests for engine failure classification."""

    def test_readiness_timeout(self):
        """Test that readiness timeouts become DependencyNotReadyError."""
        err = _command_error("error: resource temporal/temporal-frontend was not ready: timed out waiting for the condition")

        with pytest.raises(DependencyNotReadyError) as exc_info:
            with orchestrator._engine_errors("update", "perf"):
                raise err

        assert exc_info.value.__cause__ is err

    def test_other_failure(self):
        """Test that other engine failures become ProvisioningError."""
        err = _command_error("error: creating EKS Cluster: AccessDeniedException")

        with pytest.raises(ProvisioningError, match="AccessDeniedException") as exc_info:
            with orchestrator._engine_errors("update", "perf"):
                raise err

        assert not isinstance(exc_info.value, DependencyNotReadyError)
        assert exc_info.value.__cause__ is err

    def test_non_engine_errors_pass_through(self):
        """Test that unrelated exceptions are not rewrapped."""
        with pytest.raises(ConfigurationError):
            with orchestrator._engine_errors("update", "perf"):
                raise ConfigurationError("bad")


class TestUp:
    """Tests for the up operation."""

    def test_selects_stack_and_applies_config(self, mock_stack, settings, run_config):
        """Test stack selection, provider config, and update."""
        orchestrator.up(settings, run_config)

        kwargs = mock_stack.select.call_args.kwargs
        assert kwargs["stack_name"] == "perf"
        assert kwargs["project_name"] == "omes-infra"
        assert kwargs["opts"].work_dir == str(settings.work_dir)
        assert callable(kwargs["program"])
        config = mock_stack.set_all_config.call_args.args[0]
        assert {key: value.value for key, value in config.items()} == {"aws:region": "us-west-2"}
        mock_stack.up.assert_called_once()

    def test_checks_only_pulumi(self, mock_stack, settings, run_config):
        """Test that only the pulumi CLI is required; charts render in the provider."""
        orchestrator.up(settings, run_config)

        checked = [c.args[0] for c in mock_stack.require.call_args_list]
        assert checked == ["pulumi"]

    def test_preflight_failure_skips_engine(self, mock_stack, settings, run_config):
        """Test that configuration errors surface before stack selection."""
        with patch("omes_infra.orchestrator.preflight", side_effect=ConfigurationError("bad values")):
            with pytest.raises(ConfigurationError, match="bad values"):
                orchestrator.up(settings, run_config)

        mock_stack.select.assert_not_called()

    def test_update_failure(self, mock_stack, settings, run_config):
        """Test that an engine failure becomes ProvisioningError."""
        mock_stack.up.side_effect = _command_error("error: quota exceeded")

        with pytest.raises(ProvisioningError, match="quota exceeded"):
            orchestrator.up(settings, run_config)

    def test_inline_workspace_without_work_dir(self, mock_stack, settings, run_config):
        """Test that no workspace options are passed without a work dir."""
        settings = settings.model_copy(update={"work_dir": None})

        orchestrator.up(settings, run_config)

        assert mock_stack.select.call_args.kwargs["opts"] is None


class TestPreviewAndDestroy:
    """Tests for preview and destroy."""

    def test_preview(self, mock_stack, settings, run_config):
        """Test that preview does not update."""
        orchestrator.preview(settings, run_config)

        mock_stack.preview.assert_called_once()
        mock_stack.up.assert_not_called()

    def test_destroy_skips_preflight(self, mock_stack, settings, run_config):
        """Test that destroy works even if referenced files are gone."""
        with patch("omes_infra.orchestrator.preflight") as mock_preflight:
            orchestrator.destroy(settings, run_config)

        mock_preflight.assert_not_called()
        mock_stack.destroy.assert_called_once()

    def test_destroy_failure(self, mock_stack, settings, run_config):
        """Test that a destroy failure becomes ProvisioningError."""
        mock_stack.destroy.side_effect = _command_error("error: resource still in use")

        with pytest.raises(ProvisioningError, match="destroy"):
            orchestrator.destroy(settings, run_config)


class TestKubeconfig:
    """Tests for kubeconfig export."""

    def test_writes_owner_only_file(self, mock_stack, settings, run_config, tmp_path):
        """Test that the credential is written with mode 0600."""
        mock_stack.outputs.return_value = {"kubeconfig": MagicMock(value="apiVersion: v1\n")}
        path = tmp_path / "out" / "kubeconfig"

        written = orchestrator.kubeconfig(settings, run_config, path)

        assert written == path
        assert path.read_text() == "apiVersion: v1\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_missing_output(self, mock_stack, settings, run_config, tmp_path):
        """Test that a stack without outputs raises ProvisioningError."""
        mock_stack.outputs.return_value = {}

        with pytest.raises(ProvisioningError, match="no kubeconfig output"):
            orchestrator.kubeconfig(settings, run_config, tmp_path / "kubeconfig")

    def test_created_owner_only(self, mock_stack, settings, run_config, tmp_path):
        """Test that the file is created with mode 0600 before anything is written."""
        mock_stack.outputs.return_value = {"kubeconfig": MagicMock(value="apiVersion: v1\n")}
        path = tmp_path / "kubeconfig"

        with patch("omes_infra.orchestrator.os.open", wraps=os.open) as mock_open:
            orchestrator.kubeconfig(settings, run_config, path)

        assert mock_open.call_args.args[2] == 0o600
        assert path.read_text() == "apiVersion: v1\n"

    def test_existing_file_tightened(self, mock_stack, settings, run_config, tmp_path):
        """Test that an existing world-readable file is replaced with mode 0600."""
        mock_stack.outputs.return_value = {"kubeconfig": MagicMock(value="apiVersion: v1\n")}
        path = tmp_path / "kubeconfig"
        path.write_text("old contents that are longer than the new ones\n")
        path.chmod(0o644)

        orchestrator.kubeconfig(settings, run_config, path)

        assert path.read_text() == "apiVersion: v1\n"
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
