from ._codes import codes
from .common.exceptions import (
    BadRequestKubespaceError,
    BootstrapError,
    InternalServerKubespaceError,
    KubernetesApiError,
    KubespaceException,
    NamespaceNotFoundError,
    ParameterValidationError,
)

__all__ = [
    "codes",
    "KubespaceException",
    "BadRequestKubespaceError",
    "InternalServerKubespaceError",
    "ParameterValidationError",
    "NamespaceNotFoundError",
    "KubernetesApiError",
    "BootstrapError",
]
