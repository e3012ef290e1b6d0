"""Agent bootstrapper.

Downloads the agent binary from the control plane and hands the process over
to it. The same ordered list of download strategies drives two renditions:

- ``render_init_script`` produces the POSIX shell script embedded in the dev
  container command.
- ``AgentBootstrapper`` runs the identical workflow in-process.

Per cycle every available strategy is tried in order and the first success
ends the loop. A cycle in which no strategy is available is fatal (exit 127);
a cycle in which every available strategy failed sleeps and starts over, with
no upper bound. A failed ``chmod`` is fatal (exit 1), as is an agent that
cannot be exec'd (exit 126). Fatal errors hold the process alive for a long
window before exiting so the container can be inspected.
"""

import os
import shlex
import shutil
import stat
import subprocess
import time
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from string import Template
from typing import Protocol

from kubespace.common.exceptions import BootstrapError
from kubespace.config import BootstrapConfig
from kubespace.logger import init_logger

logger = init_logger(__name__)

EXIT_NO_DOWNLOAD_TOOL = 127
EXIT_NOT_EXECUTABLE = 1
EXIT_SETUP_FAILED = 1
EXIT_EXEC_FAILED = 126

AGENT_BINARY_NAME = "coder"


class DownloadStrategy(Enum):
    """Download tools in preference order."""

    CURL = "curl"
    WGET = "wget"
    BUSYBOX_WGET = "busybox"

    @property
    def executable(self) -> str:
        return self.value

    def command(self, url: str, dest: str) -> list[str]:
        if self is DownloadStrategy.CURL:
            return ["curl", "-fsSL", "--compressed", url, "-o", dest]
        if self is DownloadStrategy.WGET:
            return ["wget", "-q", url, "-O", dest]
        return ["busybox", "wget", "-q", url, "-O", dest]


DEFAULT_STRATEGIES: tuple[DownloadStrategy, ...] = (
    DownloadStrategy.CURL,
    DownloadStrategy.WGET,
    DownloadStrategy.BUSYBOX_WGET,
)


class DownloadOutcome(Enum):
    SUCCESS = "success"
    UNAVAILABLE = "unavailable"
    """The tool is not installed; not retryable by itself."""

    FAILED = "failed"
    """The tool ran and the transfer failed; retried after a backoff."""


class Downloader(Protocol):
    def available(self, strategy: DownloadStrategy) -> bool:
        ...

    def download(self, strategy: DownloadStrategy, url: str, dest: Path) -> int:
        """Run the transfer and return the tool's exit status."""
        ...


class SubprocessDownloader:
    """Runs the real download tools found on ``PATH``."""

    def available(self, strategy: DownloadStrategy) -> bool:
        return shutil.which(strategy.executable) is not None

    def download(self, strategy: DownloadStrategy, url: str, dest: Path) -> int:
        return subprocess.run(strategy.command(url, str(dest)), stdin=subprocess.DEVNULL).returncode


def agent_binary_url(access_url: str, arch: str = "amd64") -> str:
    return f"{access_url.rstrip('/')}/bin/{AGENT_BINARY_NAME}-linux-{arch}"


def code_server_command(config: BootstrapConfig, port: int) -> str:
    """Shell command installing code-server and serving it on ``port`` without auth."""
    prefix = shlex.quote(config.code_server_prefix)
    return (
        f"curl -fsSL {shlex.quote(config.code_server_install_url)} "
        f"| sh -s -- --method=standalone --prefix={prefix} "
        f"&& {prefix}/bin/code-server --auth none --port {port}"
    )


class AgentBootstrapper:
    """In-process rendition of the init script."""

    def __init__(
        self,
        access_url: str,
        binary_url: str,
        binary_dir: str | Path,
        config: BootstrapConfig | None = None,
        code_server_port: int = 13337,
        strategies: Sequence[DownloadStrategy] = DEFAULT_STRATEGIES,
        downloader: Downloader | None = None,
        sleep: Callable[[float], None] = time.sleep,
        execve: Callable[[str, list[str], dict[str, str]], None] = os.execve,
        launch_code_server: bool = True,
    ):
        self.access_url = access_url
        self.binary_url = binary_url
        self.binary_path = Path(binary_dir) / AGENT_BINARY_NAME
        self.config = config or BootstrapConfig()
        self.code_server_port = code_server_port
        self.strategies = tuple(strategies)
        self._downloader = downloader or SubprocessDownloader()
        self._sleep = sleep
        self._execve = execve
        self._launch_code_server = launch_code_server

    def run(self) -> int:
        """Bootstrap and exec the agent.

        Only returns when a fatal error occurred (after the hold window) or when
        ``execve`` is a test double. The return value is the exit status.
        """
        try:
            if self._launch_code_server:
                self.start_code_server()
            self.download_agent()
            self.make_executable()
            self.exec_agent()
        except BootstrapError as e:
            logger.error(f"{e}")
            self.hold()
            return e.exit_code

        return 0

    def start_code_server(self) -> None:
        log_path = Path(self.config.code_server_log)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "ab") as log:
            try:
                process = subprocess.Popen(
                    ["sh", "-c", code_server_command(self.config, self.code_server_port)],
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
            except OSError as e:
                logger.warning(f"failed to launch code-server: {e}")
                return
        logger.info(f"code-server launched in background, pid: {process.pid}, log: {log_path}")

    def attempt(self, strategy: DownloadStrategy) -> DownloadOutcome:
        if not self._downloader.available(strategy):
            return DownloadOutcome.UNAVAILABLE

        status = self._downloader.download(strategy, self.binary_url, self.binary_path)
        if status == 0:
            return DownloadOutcome.SUCCESS

        logger.warning(f"error: {strategy.executable} failed to download the agent, command returned: {status}")
        return DownloadOutcome.FAILED

    def download_agent(self) -> Path:
        """Fetch the agent binary, retrying forever on transfer failures.

        Raises:
            BootstrapError: exit code 127 when no download tool is installed,
                1 when the download directory cannot be created
        """
        try:
            self.binary_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BootstrapError(
                f"Failed to create {self.binary_path.parent}: {e}", exit_code=EXIT_SETUP_FAILED
            ) from e

        cycle = 0
        while True:
            cycle += 1
            outcomes = []
            for strategy in self.strategies:
                outcome = self.attempt(strategy)
                if outcome is DownloadOutcome.SUCCESS:
                    logger.info(f"downloaded agent with {strategy.executable} after {cycle} cycle(s)")
                    return self.binary_path
                outcomes.append(outcome)

            if all(outcome is DownloadOutcome.UNAVAILABLE for outcome in outcomes):
                raise BootstrapError(
                    "error: no download tool found, please install curl, wget or busybox wget",
                    exit_code=EXIT_NO_DOWNLOAD_TOOL,
                )

            logger.warning(f"failed to download agent, trying again in {self.config.retry_interval_seconds} seconds...")
            self._sleep(self.config.retry_interval_seconds)

    def make_executable(self) -> None:
        try:
            mode = self.binary_path.stat().st_mode
            self.binary_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        except OSError as e:
            raise BootstrapError(
                f"Failed to make {self.binary_path.name} executable: {e}", exit_code=EXIT_NOT_EXECUTABLE
            ) from e

    def exec_agent(self) -> None:
        env = dict(os.environ)
        env["CODER_AGENT_AUTH"] = "token"
        env["CODER_AGENT_URL"] = self.access_url
        logger.info(f"handing over to {self.binary_path} agent")
        try:
            self._execve(str(self.binary_path), [str(self.binary_path), "agent"], env)
        except OSError as e:
            raise BootstrapError(f"Failed to exec {self.binary_path} agent: {e}", exit_code=EXIT_EXEC_FAILED) from e

    def hold(self) -> None:
        hours = self.config.failure_hold_seconds / 3600
        logger.error(f"=== Agent script exited with non-zero code. Sleeping {hours:g}h to preserve logs...")
        self._sleep(self.config.failure_hold_seconds)


_INIT_SCRIPT = Template(
    """#!/usr/bin/env sh
set -eux

# Keep a failed workspace around long enough to exec into it and look around.
waitonexit() {
	status=$$?
	if [ "$$status" -ne 0 ]; then
		echo "=== Agent script exited with non-zero code ($$status). Sleeping ${hold_hours}h to preserve logs..."
		sleep ${hold_seconds}
	fi
	exit "$$status"
}
trap waitonexit EXIT

(${code_server_command}) >${code_server_log} 2>&1 &

BINARY_DIR=$$(mktemp -d -t kubespace.XXXXXX)
BINARY_NAME=${binary_name}
BINARY_URL=${binary_url}
cd "$$BINARY_DIR"

while :; do
	found=""
${download_attempts}
	if [ -z "$$found" ]; then
		echo "error: no download tool found, please install curl, wget or busybox wget"
		exit ${exit_no_tool}
	fi
	echo "Trying again in ${retry_seconds} seconds..."
	sleep ${retry_seconds}
done

if ! chmod +x "$$BINARY_NAME"; then
	echo "Failed to make $$BINARY_NAME executable"
	exit ${exit_not_executable}
fi

export CODER_AGENT_AUTH="token"
export CODER_AGENT_URL=${access_url}
exec "./$$BINARY_NAME" agent
"""
)

_ATTEMPT = Template(
    """	if command -v ${executable} >/dev/null 2>&1; then
		found=1
		${command} && break
		status=$$?
		echo "error: ${executable} failed to download the agent, command returned: $$status"
	fi"""
)


def _shell_attempt(strategy: DownloadStrategy) -> str:
    command = " ".join(strategy.command('"$BINARY_URL"', '"$BINARY_NAME"'))
    return _ATTEMPT.substitute(executable=strategy.executable, command=command)


def render_init_script(
    access_url: str,
    binary_url: str,
    config: BootstrapConfig | None = None,
    code_server_port: int = 13337,
    strategies: Sequence[DownloadStrategy] = DEFAULT_STRATEGIES,
) -> str:
    """Render the shell rendition of ``AgentBootstrapper`` for ``sh -c``."""
    config = config or BootstrapConfig()
    return _INIT_SCRIPT.substitute(
        hold_hours=f"{config.failure_hold_seconds / 3600:g}",
        hold_seconds=int(config.failure_hold_seconds),
        code_server_command=code_server_command(config, code_server_port),
        code_server_log=shlex.quote(config.code_server_log),
        binary_name=AGENT_BINARY_NAME,
        binary_url=shlex.quote(binary_url),
        download_attempts="\n".join(_shell_attempt(strategy) for strategy in strategies),
        exit_no_tool=EXIT_NO_DOWNLOAD_TOOL,
        retry_seconds=int(config.retry_interval_seconds),
        exit_not_executable=EXIT_NOT_EXECUTABLE,
        access_url=shlex.quote(access_url),
    )
