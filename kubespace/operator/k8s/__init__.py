"""K8S Operator implementation and related components."""

from kubespace.operator.k8s.api_client import K8sApiClient
from kubespace.operator.k8s.apps import ApplicationRegistrar, ExposedApplication
from kubespace.operator.k8s.composer import PodComposer
from kubespace.operator.k8s.constants import K8sConstants
from kubespace.operator.k8s.operator import K8sOperator
from kubespace.operator.k8s.provider import PodAction, ReconcileResult, WorkspaceProvider, WorkspaceStatus
from kubespace.operator.k8s.volumes import ClaimHandle, PersistentVolumeManager

__all__ = [
    "K8sApiClient",
    "ApplicationRegistrar",
    "ExposedApplication",
    "PodComposer",
    "K8sConstants",
    "K8sOperator",
    "PodAction",
    "ReconcileResult",
    "WorkspaceProvider",
    "WorkspaceStatus",
    "ClaimHandle",
    "PersistentVolumeManager",
]
