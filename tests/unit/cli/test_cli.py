import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kubespace import NamespaceNotFoundError
from kubespace.cli.command.workspace import ApplyCommand
from kubespace.cli.main import COMMANDS, find_command, main
from kubespace.operator.k8s.provider import PodAction, ReconcileResult


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("KUBESPACE_CONFIG", "KUBESPACE_ACCESS_URL", "KUBESPACE_AGENT_TOKEN", "KUBESPACE_AGENT_ARCH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_operator():
    operator = MagicMock()
    operator.apply = AsyncMock(
        return_value=ReconcileResult(
            pod_name="coder-alice-dev", namespace="coder-test", pod_action=PodAction.CREATED, claims=[]
        )
    )
    operator.teardown = AsyncMock(return_value=["coder-alice-dev", "coder-alice-dev-home"])
    operator.stop = AsyncMock(return_value=False)
    with patch("kubespace.cli.command.workspace.K8sOperator", return_value=operator):
        yield operator


def test_find_command():
    assert find_command("apply", COMMANDS) is ApplyCommand
    assert find_command("unknown", COMMANDS) is None


def test_no_command_prints_help():
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1


def test_apply(mock_operator, capsys):
    main(
        [
            "apply",
            "--owner", "alice",
            "--workspace", "dev",
            "--owner-email", "alice@example.com",
            "--namespace", "coder-test",
            "--home-disk-size", "25",
            "--agent-token", "t0ken",
        ]
    )

    identity, raw_params, token = mock_operator.apply.call_args.args
    assert identity.owner == "alice"
    assert identity.start_count == 1
    assert raw_params == {"use_kubeconfig": False, "namespace": "coder-test", "home_disk_size_gb": 25}
    assert token == "t0ken"
    assert json.loads(capsys.readouterr().out)["pod_action"] == "created"


def test_apply_token_from_env(mock_operator, monkeypatch):
    monkeypatch.setenv("KUBESPACE_AGENT_TOKEN", "from-env")

    main(["apply", "--owner", "alice", "--workspace", "dev", "--start-count", "0"])

    identity, raw_params, token = mock_operator.apply.call_args.args
    assert identity.start_count == 0
    assert raw_params == {"use_kubeconfig": False}
    assert token == "from-env"


def test_apply_failure_exits_1(mock_operator):
    mock_operator.apply.side_effect = NamespaceNotFoundError("coder-test")

    with patch("kubespace.cli.main.logger") as mock_logger:
        with pytest.raises(SystemExit) as exc_info:
            main(["apply", "--owner", "alice", "--workspace", "dev", "--agent-token", "t0ken"])

    assert exc_info.value.code == 1
    message = mock_logger.error.call_args.args[0]
    assert "apply failed (4004 Not Found)" in message
    assert "coder-test" in message
    assert "t0ken" not in message


def test_invalid_input_exits_1_without_code(mock_operator):
    mock_operator.apply.side_effect = ValueError("start_count must be 0 or 1")

    with patch("kubespace.cli.main.logger") as mock_logger:
        with pytest.raises(SystemExit) as exc_info:
            main(["apply", "--owner", "alice", "--workspace", "dev", "--agent-token", "t0ken"])

    assert exc_info.value.code == 1
    assert mock_logger.error.call_args.args[0] == "apply failed: start_count must be 0 or 1"


def test_stop(mock_operator, capsys):
    main(["stop", "--owner", "alice", "--workspace", "dev"])

    assert capsys.readouterr().out.strip() == "already stopped"


def test_teardown_requires_confirmation(mock_operator):
    with pytest.raises(SystemExit) as exc_info:
        main(["teardown", "--owner", "alice", "--workspace", "dev"])

    assert exc_info.value.code == 1
    mock_operator.teardown.assert_not_awaited()


def test_teardown(mock_operator, capsys):
    main(["teardown", "--owner", "alice", "--workspace", "dev", "--yes"])

    assert capsys.readouterr().out.splitlines() == ["deleted coder-alice-dev", "deleted coder-alice-dev-home"]


def test_render_script(capsys):
    main(["render-script", "--access-url", "https://coder.example.com", "--arch", "arm64"])

    out = capsys.readouterr().out
    assert out.startswith("#!/usr/bin/env sh")
    assert "BINARY_URL=https://coder.example.com/bin/coder-linux-arm64" in out


def test_render_script_requires_access_url():
    with pytest.raises(SystemExit) as exc_info:
        main(["render-script"])
    assert exc_info.value.code == 1


def test_bootstrap_exits_with_bootstrapper_status(tmp_path):
    with patch("kubespace.cli.command.bootstrap.AgentBootstrapper") as mock_bootstrapper:
        mock_bootstrapper.return_value.run.return_value = 127

        with pytest.raises(SystemExit) as exc_info:
            main(
                [
                    "bootstrap",
                    "--access-url", "https://coder.example.com",
                    "--binary-dir", str(tmp_path),
                    "--no-code-server",
                ]
            )

    assert exc_info.value.code == 127
    kwargs = mock_bootstrapper.call_args.kwargs
    assert kwargs["binary_url"] == "https://coder.example.com/bin/coder-linux-amd64"
    assert kwargs["binary_dir"] == str(tmp_path)
    assert kwargs["launch_code_server"] is False
