import copy
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from kubespace.config import BootstrapConfig, K8sConfig, KubespaceConfig, WorkspaceConfig
from kubespace.operator.k8s.api_client import K8sApiClient
from kubespace.operator.k8s.provider import WorkspaceProvider
from kubespace.workspace.agent import AgentSession, create_agent_session
from kubespace.workspace.identity import WorkspaceIdentity
from kubespace.workspace.parameters import AuthMode, ResolvedParameters

ACCESS_URL = "https://coder.example.com"
AGENT_TOKEN = "agent-token-5ecret"


class FakeK8sApi:
    """In-memory stand-in for K8sApiClient with the API server's create/delete semantics."""

    def __init__(self, namespaces=("coder-test",)):
        self.namespaces = set(namespaces)
        self.claims: dict[tuple[str, str], dict] = {}
        self.pods: dict[tuple[str, str], dict] = {}
        self.calls: list[tuple[str, str]] = []

    async def namespace_exists(self, namespace):
        self.calls.append(("namespace_exists", namespace))
        return namespace in self.namespaces

    async def get_claim(self, name, namespace):
        self.calls.append(("get_claim", name))
        return copy.deepcopy(self.claims.get((namespace, name)))

    async def create_claim(self, body, namespace):
        name = body["metadata"]["name"]
        self.calls.append(("create_claim", name))
        if namespace not in self.namespaces:
            raise client.exceptions.ApiException(status=404, reason="Not Found")
        if (namespace, name) in self.claims:
            raise client.exceptions.ApiException(status=409, reason="AlreadyExists")
        self.claims[(namespace, name)] = copy.deepcopy(body)
        return body

    async def delete_claim(self, name, namespace):
        self.calls.append(("delete_claim", name))
        if self.claims.pop((namespace, name), None) is None:
            raise client.exceptions.ApiException(status=404, reason="Not Found")

    async def get_pod(self, name, namespace):
        self.calls.append(("get_pod", name))
        return copy.deepcopy(self.pods.get((namespace, name)))

    async def create_pod(self, body, namespace):
        name = body["metadata"]["name"]
        self.calls.append(("create_pod", name))
        if (namespace, name) in self.pods:
            raise client.exceptions.ApiException(status=409, reason="AlreadyExists")
        pod = copy.deepcopy(body)
        pod["status"] = {"phase": "Pending"}
        self.pods[(namespace, name)] = pod
        return pod

    async def delete_pod(self, name, namespace, grace_period_seconds=None):
        self.calls.append(("delete_pod", name))
        if self.pods.pop((namespace, name), None) is None:
            raise client.exceptions.ApiException(status=404, reason="Not Found")

    def count(self, call: str) -> int:
        return sum(1 for name, _ in self.calls if name == call)


@pytest.fixture
def identity():
    return WorkspaceIdentity(
        owner="alice",
        workspace_name="dev",
        owner_email="alice@example.com",
        owner_name="Alice Liddell",
        start_count=1,
    )


@pytest.fixture
def stopped_identity(identity):
    return identity.model_copy(update={"start_count": 0})


@pytest.fixture
def kubespace_config():
    return KubespaceConfig(
        k8s=K8sConfig(kubeconfig_path=None, api_qps=100.0, pod_deletion_timeout_seconds=5, poll_interval_seconds=0),
        workspace=WorkspaceConfig(access_url=ACCESS_URL, agent_arch="amd64"),
        bootstrap=BootstrapConfig(),
    )


@pytest.fixture
def resolved_params():
    return ResolvedParameters(namespace="coder-test", home_disk_size_gb=10, auth_mode=AuthMode.IN_CLUSTER)


@pytest.fixture
def agent_session(kubespace_config) -> AgentSession:
    return create_agent_session(AGENT_TOKEN, kubespace_config.workspace, kubespace_config.bootstrap)


@pytest.fixture
def mock_api_client():
    """Create mock K8S ApiClient."""
    return MagicMock(spec=client.ApiClient)


@pytest.fixture
def k8s_api_client(mock_api_client):
    return K8sApiClient(api_client=mock_api_client, qps=100.0)


@pytest.fixture
def fake_k8s_api():
    return FakeK8sApi()


@pytest.fixture
def workspace_provider(kubespace_config, fake_k8s_api):
    return WorkspaceProvider(kubespace_config, api=fake_k8s_api)
