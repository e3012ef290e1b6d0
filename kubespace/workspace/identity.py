"""Workspace identity and the deterministic resource names derived from it."""

import hashlib
import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

NAME_PREFIX = "coder"

# Leaves room for "-home"/"-dind" inside a 63 character DNS label.
MAX_BASE_LENGTH = 57
HASH_LENGTH = 8

_PLAIN_PART = re.compile(r"[a-z0-9]+")


class ClaimRole(str, Enum):
    HOME = "home"
    DIND = "dind"


class WorkspaceIdentity(BaseModel):
    """Identity of one workspace as supplied by the control plane."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    workspace_name: str = Field(min_length=1)
    owner_email: str = ""
    owner_name: str | None = None
    """Full name used for version-control attribution. Falls back to ``owner``."""

    start_count: Literal[0, 1] = 1
    """1 when the workspace compute should exist, 0 when it is stopped."""

    @property
    def display_name(self) -> str:
        return self.owner_name or self.owner

    @property
    def running(self) -> bool:
        return self.start_count == 1


def sanitize(text: str) -> str:
    """Lowercase ``text`` and collapse everything outside ``[a-z0-9]`` into single dashes."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _identity_hash(owner: str, workspace_name: str) -> str:
    return hashlib.sha1(f"{owner}\x00{workspace_name}".encode()).hexdigest()[:HASH_LENGTH]


def base_name(owner: str, workspace_name: str) -> str:
    """Return the name shared by every resource of a workspace.

    The plain form ``coder-<owner>-<workspace>`` is only used when both parts
    are already lowercase alphanumerics and fit, so it holds exactly two
    dashes. Every other pair becomes ``coder-<owner>-<workspace>-<hash>`` with
    the parts sanitized and shortened and a hash of the raw pair appended,
    which holds at least three dashes. Distinct identities never share a name.
    """
    owner_part, workspace_part = sanitize(owner), sanitize(workspace_name)

    if _PLAIN_PART.fullmatch(owner) and _PLAIN_PART.fullmatch(workspace_name):
        name = f"{NAME_PREFIX}-{owner_part}-{workspace_part}"
        if len(name) <= MAX_BASE_LENGTH:
            return name

    # room for both parts next to the prefix, three dashes and the hash
    budget = MAX_BASE_LENGTH - len(NAME_PREFIX) - HASH_LENGTH - 3
    owner_part = owner_part[: max(budget - max(len(workspace_part), 1), budget // 2)].rstrip("-") or "x"
    workspace_part = workspace_part[: budget - len(owner_part)].rstrip("-") or "x"
    return f"{NAME_PREFIX}-{owner_part}-{workspace_part}-{_identity_hash(owner, workspace_name)}"


def pod_name(identity: WorkspaceIdentity) -> str:
    return base_name(identity.owner, identity.workspace_name)


def claim_name(role: ClaimRole, identity: WorkspaceIdentity) -> str:
    return f"{base_name(identity.owner, identity.workspace_name)}-{ClaimRole(role).value}"


def label_value(text: str) -> str:
    """Kubernetes label values are limited to 63 characters."""
    return sanitize(text)[:63].strip("-")
