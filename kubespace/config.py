from dataclasses import dataclass, field
from pathlib import Path

import yaml

from kubespace import env_vars
from kubespace.logger import init_logger

logger = init_logger(__name__)


@dataclass
class K8sConfig:
    kubeconfig_path: str | None = None
    api_qps: float = field(default_factory=lambda: env_vars.KUBESPACE_API_QPS)
    pod_deletion_timeout_seconds: int = 120
    poll_interval_seconds: float = 1.0


@dataclass
class WorkspaceConfig:
    dev_image: str = "codercom/enterprise-base:ubuntu"
    dind_image: str = "docker:dind"
    image_pull_policy: str = "IfNotPresent"
    run_as_user: int = 1000
    home_mount_path: str = "/home/coder"
    dind_mount_path: str = "/var/lib/docker"
    dind_storage_size: str = "5Gi"
    storage_class: str | None = None
    docker_port: int = 2375
    code_server_port: int = 13337
    access_url: str = field(default_factory=lambda: env_vars.KUBESPACE_ACCESS_URL or "")
    agent_arch: str = field(default_factory=lambda: env_vars.KUBESPACE_AGENT_ARCH)

    @property
    def docker_host(self) -> str:
        # dockerd is bound to the pod-local interface only
        return f"tcp://127.0.0.1:{self.docker_port}"


@dataclass
class BootstrapConfig:
    retry_interval_seconds: int = 30
    failure_hold_seconds: int = 60 * 60 * 24
    code_server_install_url: str = "https://code-server.dev/install.sh"
    code_server_prefix: str = "/tmp/code-server"
    code_server_log: str = "/tmp/code-server.log"


@dataclass
class KubespaceConfig:
    k8s: K8sConfig = field(default_factory=K8sConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    bootstrap: BootstrapConfig = field(default_factory=BootstrapConfig)

    @classmethod
    def from_env(cls, config_path: str | None = None):
        if not config_path:
            config_path = env_vars.KUBESPACE_CONFIG

        if not config_path:
            return cls()

        config_file = Path(config_path)

        if not config_file.exists():
            raise Exception(f"config file {config_file} not found")

        config: dict
        with open(config_file) as f:
            config = yaml.safe_load(f) or {}

        kwargs = {}
        if "k8s" in config:
            kwargs["k8s"] = K8sConfig(**config["k8s"])
        if "workspace" in config:
            kwargs["workspace"] = WorkspaceConfig(**config["workspace"])
        if "bootstrap" in config:
            kwargs["bootstrap"] = BootstrapConfig(**config["bootstrap"])

        return cls(**kwargs)

    def __post_init__(self) -> None:
        logger.debug(f"init KubespaceConfig: {self}")
