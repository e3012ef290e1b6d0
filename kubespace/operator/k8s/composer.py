"""Pod Composer for workspace pods.

Pod structure:
- dev container: runs the agent init script as the workspace user, mounts the
  home claim and reaches Docker through the sidecar over the pod network
- dind container: privileged Docker daemon bound to 127.0.0.1 only, mounts
  the dind claim as its storage root
- metadata: workspace labels, agent/app annotations and a spec hash used by
  the reconciler to detect drift

No pod is composed for a stopped workspace (start_count 0).
"""

import copy
import hashlib
import json
from typing import Any

from kubespace.config import WorkspaceConfig
from kubespace.operator.k8s.constants import K8sConstants
from kubespace.operator.k8s.volumes import ClaimHandle, workspace_labels
from kubespace.workspace.agent import AgentSession
from kubespace.workspace.identity import ClaimRole, WorkspaceIdentity, pod_name

def _token_digest(token: str) -> str:
    return "sha256:" + hashlib.sha256(token.encode()).hexdigest()


def spec_hash(manifest: dict[str, Any]) -> str:
    """Hash of the pod spec, with the agent token replaced by its digest.

    A rotated token changes the hash, so the pod is replaced and the agent
    picks up the new credential. The raw token never enters the hash input.
    """
    spec = copy.deepcopy(manifest.get("spec", {}))
    for container in spec.get("containers", []):
        for env in container.get("env", []):
            if env.get("name") == K8sConstants.ENV_AGENT_TOKEN:
                env["value"] = _token_digest(env.get("value") or "")
    payload = json.dumps(spec, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()[:16]


class PodComposer:
    def __init__(self, config: WorkspaceConfig):
        self._config = config

    def compose(
        self,
        identity: WorkspaceIdentity,
        namespace: str,
        session: AgentSession | None,
        home: ClaimHandle,
        dind: ClaimHandle,
    ) -> dict[str, Any] | None:
        """Build the workspace pod manifest.

        Returns:
            The manifest, or None when the workspace is stopped
        """
        if not identity.running:
            return None
        if session is None:
            raise ValueError("an agent session is required to compose a running workspace")
        if home.role is not ClaimRole.HOME or dind.role is not ClaimRole.DIND:
            raise ValueError(f"expected home and dind claims, got {home.role.value} and {dind.role.value}")

        manifest = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": pod_name(identity),
                "namespace": namespace,
                "labels": workspace_labels(identity, component="workspace"),
                "annotations": {
                    K8sConstants.ANNOTATION_AGENT_ID: session.id,
                    K8sConstants.ANNOTATION_OWNER_EMAIL: identity.owner_email,
                },
            },
            "spec": {
                "securityContext": {"fsGroup": self._config.run_as_user},
                "containers": [
                    self._dev_container(identity, session),
                    self._dind_container(),
                ],
                "volumes": [
                    {"name": K8sConstants.VOLUME_HOME, "persistentVolumeClaim": {"claimName": home.name}},
                    {"name": K8sConstants.VOLUME_DIND, "persistentVolumeClaim": {"claimName": dind.name}},
                ],
            },
        }
        manifest["metadata"]["annotations"][K8sConstants.ANNOTATION_SPEC_HASH] = spec_hash(manifest)
        return manifest

    def _dev_container(self, identity: WorkspaceIdentity, session: AgentSession) -> dict[str, Any]:
        env = {
            K8sConstants.ENV_AGENT_TOKEN: session.token.get_secret_value(),
            "CODER_AGENT_URL": self._config.access_url,
            "CODER_AGENT_BINARY_URL": session.binary_url,
            "DOCKER_HOST": self._config.docker_host,
            "GIT_AUTHOR_NAME": identity.display_name,
            "GIT_AUTHOR_EMAIL": identity.owner_email,
            "GIT_COMMITTER_NAME": identity.display_name,
            "GIT_COMMITTER_EMAIL": identity.owner_email,
        }
        return {
            "name": K8sConstants.CONTAINER_DEV,
            "image": self._config.dev_image,
            "imagePullPolicy": self._config.image_pull_policy,
            "command": ["sh", "-c", session.init_script],
            "securityContext": {"runAsUser": self._config.run_as_user},
            "env": [{"name": name, "value": value} for name, value in env.items()],
            "volumeMounts": [{"name": K8sConstants.VOLUME_HOME, "mountPath": self._config.home_mount_path}],
        }

    def _dind_container(self) -> dict[str, Any]:
        # privileged is scoped to this container; the dev container never gets it
        return {
            "name": K8sConstants.CONTAINER_DIND,
            "image": self._config.dind_image,
            "imagePullPolicy": self._config.image_pull_policy,
            "command": ["dockerd", "-H", self._config.docker_host, "--tls=false"],
            "securityContext": {"privileged": True},
            "volumeMounts": [{"name": K8sConstants.VOLUME_DIND, "mountPath": self._config.dind_mount_path}],
        }
