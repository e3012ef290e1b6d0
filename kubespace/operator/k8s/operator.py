"""K8s Operator implementation for managing workspaces via Kubernetes."""

from collections.abc import Mapping
from typing import Any

from kubespace.common.exceptions import BadRequestKubespaceError
from kubespace.config import KubespaceConfig
from kubespace.logger import init_logger
from kubespace.operator.abstract import AbstractOperator
from kubespace.operator.k8s.provider import ReconcileResult, WorkspaceProvider, WorkspaceStatus
from kubespace.workspace.agent import create_agent_session
from kubespace.workspace.identity import WorkspaceIdentity
from kubespace.workspace.parameters import ResolvedParameters, resolve_parameters

logger = init_logger(__name__)


class K8sOperator(AbstractOperator):
    """Entry point tying parameters, agent session and provider together."""

    def __init__(self, config: KubespaceConfig, provider: WorkspaceProvider | None = None):
        """Initialize K8s operator.

        Args:
            config: KubespaceConfig with cluster, workspace and bootstrap settings
            provider: Optional provider, built from config when omitted
        """
        self._config = config
        self._provider = provider or WorkspaceProvider(config)
        logger.info("Initialized K8sOperator")

    def _resolve(self, raw_params: Mapping[str, Any]) -> ResolvedParameters:
        return resolve_parameters(raw_params, kubeconfig_path=self._config.k8s.kubeconfig_path)

    async def apply(
        self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any], agent_token: str | None = None
    ) -> ReconcileResult:
        """Reconcile a workspace to its desired state.

        Parameters are validated before any cluster call. A running workspace
        needs an agent token; a stopped one does not.

        Raises:
            ParameterValidationError: If a parameter is invalid
            BadRequestKubespaceError: If a running workspace has no token or access URL
        """
        params = self._resolve(raw_params)

        session = None
        if identity.running:
            if not agent_token:
                raise BadRequestKubespaceError("an agent token is required to start a workspace")
            try:
                session = create_agent_session(agent_token, self._config.workspace, self._config.bootstrap)
            except ValueError as e:
                raise BadRequestKubespaceError(str(e)) from e

        return await self._provider.reconcile(identity, params, session)

    async def stop(self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any]) -> bool:
        return await self._provider.stop(identity, self._resolve(raw_params))

    async def teardown(self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any]) -> list[str]:
        return await self._provider.teardown(identity, self._resolve(raw_params))

    async def get_status(self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any]) -> WorkspaceStatus:
        return await self._provider.get_status(identity, self._resolve(raw_params))
