from kubespace._codes import codes


class KubespaceException(Exception):
    _code: codes = None

    def __init__(self, message, code: codes = None):
        super().__init__(message)
        self._code = code

    @property
    def code(self):
        return self._code


class BadRequestKubespaceError(KubespaceException):
    def __init__(self, message, code: codes = codes.BAD_REQUEST):
        super().__init__(message, code)


class ParameterValidationError(BadRequestKubespaceError):
    """An operator-supplied parameter failed validation."""

    def __init__(self, field: str, message: str):
        super().__init__(f"invalid parameter '{field}': {message}")
        self.field = field


class NamespaceNotFoundError(KubespaceException):
    """The target namespace does not exist. Namespaces are never created implicitly."""

    def __init__(self, namespace: str):
        super().__init__(
            f"namespace '{namespace}' does not exist, create it before provisioning workspaces",
            codes.NOT_FOUND,
        )
        self.namespace = namespace


class InternalServerKubespaceError(KubespaceException):
    def __init__(self, message, code: codes = codes.INTERNAL_SERVER_ERROR):
        super().__init__(message, code)


class KubernetesApiError(InternalServerKubespaceError):
    def __init__(self, action: str, status: int | None = None, reason: str | None = None):
        super().__init__(f"failed to {action}: {status} {reason}")
        self.status = status
        self.reason = reason


class BootstrapError(KubespaceException):
    """Fatal agent bootstrap failure; ``exit_code`` is the status the container exits with."""

    def __init__(self, message, exit_code: int, code: codes = codes.COMMAND_ERROR):
        super().__init__(message, code)
        self.exit_code = exit_code
