from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kubespace.operator.k8s.provider import ReconcileResult, WorkspaceStatus
    from kubespace.workspace.identity import WorkspaceIdentity


class AbstractOperator(ABC):
    @abstractmethod
    async def apply(
        self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any], agent_token: str | None = None
    ) -> ReconcileResult:
        ...

    @abstractmethod
    async def stop(self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any]) -> bool:
        ...

    @abstractmethod
    async def teardown(self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any]) -> list[str]:
        ...

    @abstractmethod
    async def get_status(self, identity: WorkspaceIdentity, raw_params: Mapping[str, Any]) -> WorkspaceStatus:
        ...
