"""Workspace provider: converges Kubernetes resources to the desired workspace state."""

import asyncio
import time
from enum import Enum
from typing import Any

from kubernetes import client, config as k8s_config
from pydantic import BaseModel

from kubespace.common.exceptions import BadRequestKubespaceError, KubernetesApiError
from kubespace.config import KubespaceConfig
from kubespace.logger import init_logger
from kubespace.operator.k8s.api_client import K8sApiClient
from kubespace.operator.k8s.apps import ApplicationRegistrar, ExposedApplication
from kubespace.operator.k8s.composer import PodComposer
from kubespace.operator.k8s.constants import K8sConstants
from kubespace.operator.k8s.volumes import ClaimHandle, PersistentVolumeManager
from kubespace.workspace.agent import AgentSession
from kubespace.workspace.identity import ClaimRole, WorkspaceIdentity, claim_name, pod_name
from kubespace.workspace.parameters import AuthMode, ResolvedParameters

logger = init_logger(__name__)


class PodAction(str, Enum):
    CREATED = "created"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"
    DELETED = "deleted"
    ABSENT = "absent"


class ReconcileResult(BaseModel):
    pod_name: str
    namespace: str
    pod_action: PodAction
    claims: list[ClaimHandle]
    apps: list[ExposedApplication] = []


class WorkspaceStatus(BaseModel):
    pod_name: str
    namespace: str
    phase: str | None = None
    """Pod phase, None when the pod does not exist."""

    claims: list[str] = []
    """Names of the claims that currently exist."""

    apps: list[ExposedApplication] = []

    @property
    def running(self) -> bool:
        return self.phase == "Running"


class WorkspaceProvider:
    """Reconciles one workspace at a time.

    Claims are ensured on every reconciliation regardless of start_count; the
    pod only exists while the workspace is started. A pod whose spec hash no
    longer matches the desired manifest is deleted and recreated.
    """

    def __init__(self, config: KubespaceConfig, api: K8sApiClient | None = None):
        self._config = config
        self._api = api
        self._composer = PodComposer(config.workspace)
        self._registrar = ApplicationRegistrar(config.workspace)
        self._volumes = PersistentVolumeManager(api, config.workspace.storage_class) if api else None

    async def _ensure_initialized(self, params: ResolvedParameters):
        """Load cluster credentials for the resolved auth mode and build the API client once."""
        if self._api is not None:
            return

        try:
            if params.auth_mode is AuthMode.KUBECONFIG:
                k8s_config.load_kube_config(config_file=params.kubeconfig_path)
            else:
                k8s_config.load_incluster_config()
        except (k8s_config.ConfigException, OSError) as e:
            logger.error(f"Failed to load Kubernetes configuration ({params.auth_mode.value}): {e}")
            raise BadRequestKubespaceError(f"failed to load kubernetes configuration: {e}") from e

        self._api = K8sApiClient(api_client=client.ApiClient(), qps=self._config.k8s.api_qps)
        self._volumes = PersistentVolumeManager(self._api, self._config.workspace.storage_class)
        logger.info(f"Initialized K8s provider with {params.auth_mode.value} credentials")

    async def reconcile(
        self,
        identity: WorkspaceIdentity,
        params: ResolvedParameters,
        session: AgentSession | None = None,
    ) -> ReconcileResult:
        """Converge claims and pod to the desired state.

        ``session`` may be omitted for a stopped workspace.
        """
        await self._ensure_initialized(params)
        namespace = params.namespace
        name = pod_name(identity)

        home = await self._volumes.ensure_claim(ClaimRole.HOME, identity, namespace, params.home_disk_size_gb)
        dind = await self._volumes.ensure_claim(
            ClaimRole.DIND, identity, namespace, self._config.workspace.dind_storage_size
        )

        manifest = self._composer.compose(identity, namespace, session, home, dind)
        existing = await self._get_pod(name, namespace)

        if manifest is None:
            action = PodAction.ABSENT
            if existing is not None:
                await self._delete_pod(name, namespace)
                action = PodAction.DELETED
            logger.info(f"Workspace {name} is stopped, pod {action.value}")
            return ReconcileResult(pod_name=name, namespace=namespace, pod_action=action, claims=[home, dind])

        apps = [self._registrar.register(session)]
        self._registrar.annotate(manifest, apps)

        if existing is None:
            action = PodAction.CREATED
        elif not self._is_terminating(existing) and self._hash_of(existing) == self._hash_of(manifest):
            logger.info(f"Pod {name} is up to date")
            return ReconcileResult(
                pod_name=name,
                namespace=namespace,
                pod_action=PodAction.UNCHANGED,
                claims=[home, dind],
                apps=self._registrar.from_pod(existing),
            )
        else:
            logger.info(f"Pod {name} drifted from the desired spec, replacing it")
            if not self._is_terminating(existing):
                await self._delete_pod(name, namespace)
            await self._wait_for_pod_deletion(name, namespace)
            action = PodAction.REPLACED

        await self._create_pod(manifest, namespace)
        logger.info(f"Pod {name} {action.value} in namespace {namespace}")
        return ReconcileResult(pod_name=name, namespace=namespace, pod_action=action, claims=[home, dind], apps=apps)

    async def stop(self, identity: WorkspaceIdentity, params: ResolvedParameters) -> bool:
        """Delete the workspace pod and keep its claims.

        Returns:
            True if a pod was deleted, False if none existed
        """
        await self._ensure_initialized(params)
        name = pod_name(identity)
        if await self._get_pod(name, params.namespace) is None:
            logger.info(f"Pod {name} not found, workspace already stopped")
            return False
        await self._delete_pod(name, params.namespace)
        return True

    async def teardown(self, identity: WorkspaceIdentity, params: ResolvedParameters) -> list[str]:
        """Delete the pod and both claims. This is the only path that removes data.

        Returns:
            Names of the resources that were deleted
        """
        await self._ensure_initialized(params)
        deleted = []
        name = pod_name(identity)
        if await self._get_pod(name, params.namespace) is not None:
            await self._delete_pod(name, params.namespace)
            await self._wait_for_pod_deletion(name, params.namespace)
            deleted.append(name)

        for role in (ClaimRole.HOME, ClaimRole.DIND):
            if await self._volumes.delete_claim(role, identity, params.namespace):
                deleted.append(claim_name(role, identity))
        return deleted

    async def get_status(self, identity: WorkspaceIdentity, params: ResolvedParameters) -> WorkspaceStatus:
        await self._ensure_initialized(params)
        namespace = params.namespace
        name = pod_name(identity)
        pod = await self._get_pod(name, namespace)

        claims = []
        for role in (ClaimRole.HOME, ClaimRole.DIND):
            claim = claim_name(role, identity)
            try:
                if await self._api.get_claim(claim, namespace) is not None:
                    claims.append(claim)
            except client.exceptions.ApiException as e:
                raise KubernetesApiError(f"read PVC {claim}", e.status, e.reason) from e

        return WorkspaceStatus(
            pod_name=name,
            namespace=namespace,
            phase=(pod.get("status") or {}).get("phase") if pod else None,
            claims=claims,
            apps=self._registrar.from_pod(pod),
        )

    @staticmethod
    def _hash_of(pod: dict[str, Any]) -> str | None:
        return (pod.get("metadata", {}).get("annotations") or {}).get(K8sConstants.ANNOTATION_SPEC_HASH)

    @staticmethod
    def _is_terminating(pod: dict[str, Any]) -> bool:
        return bool(pod.get("metadata", {}).get("deletionTimestamp"))

    async def _get_pod(self, name: str, namespace: str) -> dict[str, Any] | None:
        try:
            return await self._api.get_pod(name, namespace)
        except client.exceptions.ApiException as e:
            raise KubernetesApiError(f"read pod {name}", e.status, e.reason) from e

    async def _create_pod(self, manifest: dict[str, Any], namespace: str) -> None:
        name = manifest["metadata"]["name"]
        try:
            await self._api.create_pod(manifest, namespace)
        except client.exceptions.ApiException as e:
            logger.error(f"Failed to create pod {name}: {e.reason}")
            raise KubernetesApiError(f"create pod {name}", e.status, e.reason) from e

    async def _delete_pod(self, name: str, namespace: str) -> None:
        try:
            await self._api.delete_pod(name, namespace)
            logger.info(f"Deleted pod {name} from namespace {namespace}")
        except client.exceptions.ApiException as e:
            if e.status == 404:
                logger.warning(f"Pod {name} not found, already deleted")
                return
            raise KubernetesApiError(f"delete pod {name}", e.status, e.reason) from e

    async def _wait_for_pod_deletion(self, name: str, namespace: str) -> None:
        timeout = self._config.k8s.pod_deletion_timeout_seconds
        deadline = time.monotonic() + timeout
        while await self._get_pod(name, namespace) is not None:
            if time.monotonic() >= deadline:
                raise KubernetesApiError(f"delete pod {name}", 504, f"still terminating after {timeout}s")
            await asyncio.sleep(self._config.k8s.poll_interval_seconds)
