"""Persistent volume claims backing a workspace.

Claims are keyed by (role, owner, workspace name) and outlive the pod: they are
created when absent, reused on every later reconciliation and only removed by
an explicit teardown.
"""

from typing import Any

from kubernetes import client
from pydantic import BaseModel, ConfigDict

from kubespace.common.exceptions import KubernetesApiError, NamespaceNotFoundError
from kubespace.logger import init_logger
from kubespace.operator.k8s.api_client import K8sApiClient
from kubespace.operator.k8s.constants import K8sConstants
from kubespace.utils.format import to_quantity
from kubespace.workspace.identity import ClaimRole, WorkspaceIdentity, claim_name, label_value

logger = init_logger(__name__)


class ClaimHandle(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ClaimRole
    name: str
    namespace: str
    capacity: str
    created: bool = False
    """True when this call created the claim."""


def workspace_labels(identity: WorkspaceIdentity, component: str) -> dict[str, str]:
    return {
        K8sConstants.LABEL_MANAGED_BY: K8sConstants.MANAGED_BY,
        K8sConstants.LABEL_NAME: K8sConstants.APP_NAME,
        K8sConstants.LABEL_COMPONENT: component,
        K8sConstants.LABEL_OWNER: label_value(identity.owner),
        K8sConstants.LABEL_WORKSPACE: label_value(identity.workspace_name),
    }


def build_claim_manifest(
    role: ClaimRole,
    identity: WorkspaceIdentity,
    namespace: str,
    capacity: str,
    storage_class: str | None = None,
) -> dict[str, Any]:
    labels = workspace_labels(identity, component="storage")
    labels[K8sConstants.LABEL_CLAIM_ROLE] = ClaimRole(role).value

    spec: dict[str, Any] = {
        "accessModes": [K8sConstants.ACCESS_MODE],
        "resources": {"requests": {"storage": capacity}},
    }
    if storage_class:
        spec["storageClassName"] = storage_class

    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {
            "name": claim_name(role, identity),
            "namespace": namespace,
            "labels": labels,
        },
        "spec": spec,
    }


class PersistentVolumeManager:
    def __init__(self, api: K8sApiClient, storage_class: str | None = None):
        self._api = api
        self._storage_class = storage_class

    async def ensure_claim(
        self,
        role: ClaimRole,
        identity: WorkspaceIdentity,
        namespace: str,
        size: int | str,
    ) -> ClaimHandle:
        """Create the claim for ``role`` if it is absent, otherwise reuse it.

        Args:
            role: home or dind
            identity: Workspace the claim belongs to
            namespace: Target namespace, which must already exist
            size: Capacity in GiB, or a quantity string such as '5Gi'

        Raises:
            NamespaceNotFoundError: If the namespace does not exist
            KubernetesApiError: If the API server rejects a request
        """
        name = claim_name(role, identity)
        capacity = to_quantity(size)

        try:
            existing = await self._api.get_claim(name, namespace)
            if existing is not None:
                return self._reuse(role, name, namespace, capacity, existing)

            if not await self._api.namespace_exists(namespace):
                raise NamespaceNotFoundError(namespace)

            body = build_claim_manifest(role, identity, namespace, capacity, self._storage_class)
            await self._api.create_claim(body, namespace)
        except client.exceptions.ApiException as e:
            if e.status == 409:
                logger.info(f"PVC {name} was created concurrently, reusing it")
                return ClaimHandle(role=role, name=name, namespace=namespace, capacity=capacity)
            logger.error(f"Failed to ensure PVC {name} in {namespace}: {e.reason}")
            raise KubernetesApiError(f"ensure PVC {name}", e.status, e.reason) from e

        logger.info(f"Created PVC {name} ({capacity}) in namespace {namespace}")
        return ClaimHandle(role=role, name=name, namespace=namespace, capacity=capacity, created=True)

    def _reuse(self, role: ClaimRole, name: str, namespace: str, capacity: str, existing: dict) -> ClaimHandle:
        current = existing.get("spec", {}).get("resources", {}).get("requests", {}).get("storage", capacity)
        if current != capacity:
            logger.warning(f"PVC {name} already exists with {current}, requested {capacity}; keeping the existing claim")
        else:
            logger.debug(f"Reusing PVC {name} in namespace {namespace}")
        return ClaimHandle(role=role, name=name, namespace=namespace, capacity=current)

    async def delete_claim(self, role: ClaimRole, identity: WorkspaceIdentity, namespace: str) -> bool:
        """Delete a claim. Only called on explicit teardown.

        Returns:
            True if a claim was deleted, False if it did not exist
        """
        name = claim_name(role, identity)
        try:
            await self._api.delete_claim(name, namespace)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                logger.warning(f"PVC {name} not found, already deleted")
                return False
            raise KubernetesApiError(f"delete PVC {name}", e.status, e.reason) from e
        logger.info(f"Deleted PVC {name} from namespace {namespace}")
        return True
