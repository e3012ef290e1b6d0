"""Applications exposed through the workspace agent.

An application is metadata only: it points at a port bound inside the dev
container and is reached through the agent's reverse proxy. It is stored as
an annotation on the pod, so it disappears together with the pod.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from kubespace.config import WorkspaceConfig
from kubespace.logger import init_logger
from kubespace.operator.k8s.constants import K8sConstants
from kubespace.workspace.agent import AgentSession

logger = init_logger(__name__)


class ExposedApplication(BaseModel):
    model_config = ConfigDict(frozen=True)

    agent_id: str
    """Lookup key of the agent session serving the app. Not an ownership link."""

    slug: str
    name: str
    icon: str
    url: str
    relative_path: bool = True


_apps_adapter = TypeAdapter(list[ExposedApplication])


class ApplicationRegistrar:
    def __init__(self, config: WorkspaceConfig):
        self._config = config

    def register(self, session: AgentSession) -> ExposedApplication:
        """Declare code-server on the dev container's local editor port."""
        return ExposedApplication(
            agent_id=session.id,
            slug="code-server",
            name="code-server",
            icon="/icon/code.svg",
            url=f"http://localhost:{self._config.code_server_port}?folder={self._config.home_mount_path}",
            relative_path=True,
        )

    @staticmethod
    def annotate(manifest: dict[str, Any], apps: list[ExposedApplication]) -> dict[str, Any]:
        annotations = manifest.setdefault("metadata", {}).setdefault("annotations", {})
        annotations[K8sConstants.ANNOTATION_APPS] = _apps_adapter.dump_json(apps).decode()
        return manifest

    @staticmethod
    def from_pod(pod: dict[str, Any] | None) -> list[ExposedApplication]:
        """Read the apps declared on a pod. An absent pod exposes nothing."""
        if not pod:
            return []
        raw = (pod.get("metadata", {}).get("annotations") or {}).get(K8sConstants.ANNOTATION_APPS)
        if not raw:
            return []
        try:
            return _apps_adapter.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring malformed {K8sConstants.ANNOTATION_APPS} annotation: {e}")
            return []
