"""Operator-supplied workspace parameters and their resolution."""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from kubespace import env_vars
from kubespace.common.exceptions import ParameterValidationError
from kubespace.logger import init_logger

logger = init_logger(__name__)

DNS_LABEL_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


class AuthMode(str, Enum):
    KUBECONFIG = "kubeconfig"
    """Authenticate with the host's kubeconfig file."""

    IN_CLUSTER = "in_cluster"
    """Authenticate with the pod's service account."""


class Parameters(BaseModel):
    """Raw workspace parameters as an operator provides them."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    use_kubeconfig: bool = False
    """Use the host kubeconfig instead of the in-cluster service account."""

    namespace: str = Field(default_factory=lambda: env_vars.KUBESPACE_NAMESPACE, max_length=63, pattern=DNS_LABEL_PATTERN)
    """Namespace the workspace resources are created in. Must already exist."""

    home_disk_size_gb: int = Field(default=10, ge=1)
    """Size of the home volume in GiB."""


class ResolvedParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    namespace: str
    home_disk_size_gb: int
    auth_mode: AuthMode
    kubeconfig_path: str | None = None

    @property
    def home_disk_size(self) -> str:
        return f"{self.home_disk_size_gb}Gi"


def resolve_parameters(raw: Mapping[str, Any], kubeconfig_path: str | None = None) -> ResolvedParameters:
    """Validate raw parameters and resolve the cluster authentication mode.

    Args:
        raw: Parameter values keyed by field name
        kubeconfig_path: Config file used in kubeconfig mode, defaults to ``KUBESPACE_KUBECONFIG``

    Raises:
        ParameterValidationError: naming the first offending field
    """
    try:
        params = Parameters(**raw)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "parameters"
        raise ParameterValidationError(field, error["msg"]) from e

    if params.use_kubeconfig:
        auth_mode = AuthMode.KUBECONFIG
        kubeconfig_path = kubeconfig_path or env_vars.KUBESPACE_KUBECONFIG
    else:
        auth_mode = AuthMode.IN_CLUSTER
        kubeconfig_path = None

    logger.debug(f"resolved parameters: namespace={params.namespace}, auth_mode={auth_mode.value}")
    return ResolvedParameters(
        namespace=params.namespace,
        home_disk_size_gb=params.home_disk_size_gb,
        auth_mode=auth_mode,
        kubeconfig_path=kubeconfig_path,
    )
