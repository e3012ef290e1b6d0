import os
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    KUBESPACE_LOGGING_PATH: str | None = None
    KUBESPACE_LOGGING_FILE_NAME: str | None = None
    KUBESPACE_LOGGING_LEVEL: str | None = None
    KUBESPACE_CONFIG: str | None = None
    KUBESPACE_KUBECONFIG: str = str(Path.home() / ".kube" / "config")
    KUBESPACE_NAMESPACE: str = "coder-workspaces"
    KUBESPACE_API_QPS: float = 5.0

    # Control plane
    KUBESPACE_ACCESS_URL: str | None = None
    KUBESPACE_AGENT_TOKEN: str | None = None
    KUBESPACE_AGENT_ARCH: str = "amd64"

    # Bootstrap runner
    KUBESPACE_BOOTSTRAP_DIR: str | None = None


environment_variables: dict[str, Callable[[], Any]] = {
    "KUBESPACE_LOGGING_PATH": lambda: os.getenv("KUBESPACE_LOGGING_PATH"),
    "KUBESPACE_LOGGING_FILE_NAME": lambda: os.getenv("KUBESPACE_LOGGING_FILE_NAME", "kubespace.log"),
    "KUBESPACE_LOGGING_LEVEL": lambda: os.getenv("KUBESPACE_LOGGING_LEVEL", "INFO"),
    "KUBESPACE_CONFIG": lambda: os.getenv("KUBESPACE_CONFIG"),
    "KUBESPACE_KUBECONFIG": lambda: os.getenv("KUBESPACE_KUBECONFIG", str(Path.home() / ".kube" / "config")),
    "KUBESPACE_NAMESPACE": lambda: os.getenv("KUBESPACE_NAMESPACE", "coder-workspaces"),
    "KUBESPACE_API_QPS": lambda: float(os.getenv("KUBESPACE_API_QPS", "5")),
    "KUBESPACE_ACCESS_URL": lambda: os.getenv("KUBESPACE_ACCESS_URL"),
    "KUBESPACE_AGENT_TOKEN": lambda: os.getenv("KUBESPACE_AGENT_TOKEN"),
    "KUBESPACE_AGENT_ARCH": lambda: os.getenv("KUBESPACE_AGENT_ARCH", "amd64"),
    "KUBESPACE_BOOTSTRAP_DIR": lambda: os.getenv("KUBESPACE_BOOTSTRAP_DIR"),
}


def __getattr__(name: str):
    if name in environment_variables:
        return environment_variables[name]()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
