from __future__ import annotations

from enum import IntEnum

__all__ = ["codes"]


class codes(IntEnum):
    """
    kubespace status codes.

    Each member carries an integer value and a human-readable phrase. The
    ranges classify failures the same way the provisioning workflow does:
    validation problems (4xxx) are never retried, Kubernetes/API problems
    (5xxx) surface to the caller, bootstrap problems (6xxx) belong to the
    workspace container.
    """

    _ignore_ = ["phrase"]
    phrase: str = ""

    def __new__(cls, value: int, phrase: str = "") -> codes:
        obj = int.__new__(cls, value)
        obj._value_ = value
        obj.phrase = phrase
        return obj

    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def get_reason_phrase(cls, value: int) -> str:
        """
        Get the reason phrase for a given status code value.

        Example:
            >>> codes.get_reason_phrase(4004)
            'Not Found'
            >>> codes.get_reason_phrase(9999)
            ''
        """
        try:
            return codes(value).phrase
        except ValueError:
            return ""

    OK = 2000, "OK"

    BAD_REQUEST = 4000, "Bad Request"
    """
    Invalid parameters or identity. Raised synchronously, never retried.
    """

    NOT_FOUND = 4004, "Not Found"
    """
    A required external precondition, such as the target namespace, is missing.
    """

    INTERNAL_SERVER_ERROR = 5000, "Internal Server Error"
    """
    The Kubernetes API rejected or failed a request.
    """

    COMMAND_ERROR = 6000, "Command Error"
    """
    The agent bootstrapper hit a fatal capability or permission error.
    """

