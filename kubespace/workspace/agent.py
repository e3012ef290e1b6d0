import uuid

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from kubespace.config import BootstrapConfig, WorkspaceConfig
from kubespace.workspace.bootstrap import agent_binary_url, render_init_script


class AgentSession(BaseModel):
    """One agent registration, created once per reconciliation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    token: SecretStr
    """Credential the agent presents to the control plane. Only revealed inside the dev container env."""

    binary_url: str
    init_script: str


def create_agent_session(
    token: str | SecretStr,
    workspace_config: WorkspaceConfig,
    bootstrap_config: BootstrapConfig,
) -> AgentSession:
    if not workspace_config.access_url:
        raise ValueError("access_url is required to bootstrap the agent")

    binary_url = agent_binary_url(workspace_config.access_url, workspace_config.agent_arch)
    init_script = render_init_script(
        access_url=workspace_config.access_url,
        binary_url=binary_url,
        config=bootstrap_config,
        code_server_port=workspace_config.code_server_port,
    )
    return AgentSession(
        token=token if isinstance(token, SecretStr) else SecretStr(token),
        binary_url=binary_url,
        init_script=init_script,
    )
