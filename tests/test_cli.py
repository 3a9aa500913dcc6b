import subprocess
from unittest.mock import patch

import pytest

from offboarding import cli
from offboarding.kubectl import Kubectl

ARGS = ["--app-name", "hello-world", "--namespace", "hello-ns", "--env", "dev", "--repo-id", "222"]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in ("OFFBOARD_APP_NAME", "OFFBOARD_NAMESPACE", "OFFBOARD_ENV", "OFFBOARD_REPO_ID"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def kubectl_installed():
    with patch("offboarding.cli.check_kubectl", return_value=True):
        yield


def test_successful_run_prints_report(kubectl_installed, populated_cluster, capsys):
    with patch("offboarding.cli.Kubectl") as mock_kubectl:
        mock_kubectl.side_effect = lambda dry_run: Kubectl(dry_run=dry_run, runner=populated_cluster)

        rc = cli.main(ARGS)

    out = capsys.readouterr().out
    assert rc == 0
    assert "Offboarding Deployment: hello-world-dev" in out
    assert "✓ application/hello-world-argocd-dev: deleted" in out
    assert "- application/hello-world-dev: not-found" in out
    assert "Webhook URL: argocd-webhook-url" in out


def test_config_error_exits_nonzero(capsys):
    rc = cli.main(["--app-name", "hello-world"])

    assert rc == 1
    assert "missing required values" in capsys.readouterr().err


def test_missing_kubectl_exits_nonzero(capsys):
    with patch("offboarding.cli.check_kubectl", return_value=False):
        rc = cli.main(ARGS)

    assert rc == 1
    assert "kubectl is required" in capsys.readouterr().err


def test_unguarded_command_failure_exits_nonzero(kubectl_installed, capsys):
    with patch("offboarding.cli.offboard") as mock_offboard:
        mock_offboard.side_effect = subprocess.CalledProcessError(
            1, ["kubectl", "rollout", "restart"], stderr="forbidden"
        )
        rc = cli.main(ARGS)

    err = capsys.readouterr().err
    assert rc == 1
    assert "Command failed: kubectl rollout restart" in err
    assert "forbidden" in err


def test_dry_run_flag_reaches_client(kubectl_installed):
    with patch("offboarding.cli.offboard") as mock_offboard, \
            patch("offboarding.cli.Kubectl") as mock_kubectl:
        mock_offboard.return_value.records = []
        rc = cli.main(ARGS + ["--dry-run"])

    assert rc == 0
    mock_kubectl.assert_called_once_with(dry_run=True)
    assert mock_offboard.call_args[0][1].dry_run is True
