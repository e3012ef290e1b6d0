import os
import shutil
import subprocess
from pathlib import Path

import pytest

from kubespace.config import BootstrapConfig
from kubespace.workspace.bootstrap import DownloadStrategy, render_init_script

ACCESS_URL = "https://coder.example.com"
BINARY_URL = f"{ACCESS_URL}/bin/coder-linux-amd64"


class TestRenderInitScript:
    def test_no_unrendered_placeholders(self):
        script = render_init_script(ACCESS_URL, BINARY_URL)

        assert "${" not in script
        assert "$$" not in script
        assert script.startswith("#!/usr/bin/env sh\nset -eux\n")

    def test_strategies_in_preference_order(self):
        script = render_init_script(ACCESS_URL, BINARY_URL)

        curl = script.index("command -v curl")
        wget = script.index("command -v wget")
        busybox = script.index("command -v busybox")
        assert curl < wget < busybox
        assert 'curl -fsSL --compressed "$BINARY_URL" -o "$BINARY_NAME" && break' in script
        assert 'busybox wget -q "$BINARY_URL" -O "$BINARY_NAME" && break' in script

    def test_custom_strategies(self):
        script = render_init_script(ACCESS_URL, BINARY_URL, strategies=[DownloadStrategy.WGET])

        assert "command -v wget" in script
        assert "command -v curl" not in script

    def test_exit_codes_and_intervals(self):
        script = render_init_script(ACCESS_URL, BINARY_URL, config=BootstrapConfig())

        assert "exit 127" in script
        assert "exit 1\n" in script
        assert "sleep 30" in script
        assert "sleep 86400" in script
        assert "Sleeping 24h to preserve logs" in script

    def test_agent_handover(self):
        script = render_init_script(ACCESS_URL, BINARY_URL)

        assert f"BINARY_URL={BINARY_URL}" in script
        assert 'export CODER_AGENT_AUTH="token"' in script
        assert f"export CODER_AGENT_URL={ACCESS_URL}" in script
        assert script.rstrip().endswith('exec "./$BINARY_NAME" agent')

    def test_code_server_started_before_download(self):
        script = render_init_script(ACCESS_URL, BINARY_URL, code_server_port=9000)

        assert script.index("code-server --auth none --port 9000") < script.index("while :; do")

    def test_values_are_shell_quoted(self):
        script = render_init_script("https://coder.example.com/a b", BINARY_URL)

        assert "export CODER_AGENT_URL='https://coder.example.com/a b'" in script

    def test_token_is_not_embedded(self):
        assert "CODER_AGENT_TOKEN" not in render_init_script(ACCESS_URL, BINARY_URL)


FAKE_CURL = """#!/bin/sh
dest=""
while [ $# -gt 0 ]; do
    if [ "$1" = "-o" ]; then dest="$2"; fi
    shift
done
[ -n "$dest" ] || exit 1
if [ -n "$FAIL_ONCE" ] && [ ! -f "$FAIL_ONCE" ]; then
    : > "$FAIL_ONCE"
    exit 22
fi
cat "$FAKE_AGENT" > "$dest"
"""

FAKE_SLEEP = """#!/bin/sh
echo "$1" >> "$SLEEP_LOG"
"""

FAKE_AGENT = """#!/bin/sh
echo "$1 $CODER_AGENT_AUTH $CODER_AGENT_URL" > "$AGENT_LOG"
"""


def _require_tools():
    if not Path("/bin/sh").exists():
        pytest.skip("/bin/sh is not available")
    tools = {name: shutil.which(name) for name in ("mktemp", "chmod", "cat")}
    missing = [name for name, path in tools.items() if path is None]
    if missing:
        pytest.skip(f"missing tools: {missing}")
    return tools


def _write_executable(path: Path, content: str):
    path.write_text(content)
    path.chmod(0o755)


@pytest.fixture
def sandbox(tmp_path):
    """An isolated PATH holding only the tools the script is allowed to find."""
    tools = _require_tools()
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    for name, target in tools.items():
        (bin_dir / name).symlink_to(target)
    _write_executable(bin_dir / "sleep", FAKE_SLEEP)
    _write_executable(tmp_path / "agent", FAKE_AGENT)

    env = {
        "PATH": str(bin_dir),
        "TMPDIR": str(tmp_path),
        "HOME": str(tmp_path),
        "SLEEP_LOG": str(tmp_path / "sleep.log"),
        "AGENT_LOG": str(tmp_path / "agent.log"),
        "FAKE_AGENT": str(tmp_path / "agent"),
    }
    return tmp_path, bin_dir, env


def _run(script: str, env: dict[str, str]) -> subprocess.CompletedProcess:
    return subprocess.run(["/bin/sh", "-c", script], env=env, capture_output=True, text=True, timeout=60)


def _script(tmp_path: Path) -> str:
    config = BootstrapConfig(
        code_server_log=str(tmp_path / "code-server.log"),
        code_server_prefix=str(tmp_path / "code-server"),
    )
    return render_init_script(ACCESS_URL, BINARY_URL, config=config)


def _sleeps(tmp_path: Path) -> list[str]:
    log = tmp_path / "sleep.log"
    return log.read_text().split() if log.exists() else []


@pytest.mark.skipif(os.name != "posix", reason="requires a POSIX shell")
class TestInitScriptExecution:
    def test_no_download_tool_exits_127(self, sandbox):
        tmp_path, _, env = sandbox

        result = _run(_script(tmp_path), env)

        assert result.returncode == 127
        assert "no download tool found" in result.stdout + result.stderr
        assert _sleeps(tmp_path) == ["86400"]
        assert not (tmp_path / "agent.log").exists()

    def test_downloads_and_execs_agent(self, sandbox):
        tmp_path, bin_dir, env = sandbox
        _write_executable(bin_dir / "curl", FAKE_CURL)

        result = _run(_script(tmp_path), env)

        assert result.returncode == 0, result.stderr
        assert (tmp_path / "agent.log").read_text().split() == ["agent", "token", ACCESS_URL]
        assert "86400" not in _sleeps(tmp_path)

    def test_retries_after_failed_download(self, sandbox):
        tmp_path, bin_dir, env = sandbox
        _write_executable(bin_dir / "curl", FAKE_CURL)
        env["FAIL_ONCE"] = str(tmp_path / "failed-once")

        result = _run(_script(tmp_path), env)

        assert result.returncode == 0, result.stderr
        assert "Trying again in 30 seconds" in result.stdout
        assert _sleeps(tmp_path) == ["30"]
        assert (tmp_path / "agent.log").exists()
