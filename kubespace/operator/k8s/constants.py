"""K8S operator constants for labels and annotations."""


class K8sConstants:
    """Constants for workspace labels, annotations and container layout."""

    # Label keys
    LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
    LABEL_NAME = "app.kubernetes.io/name"
    LABEL_COMPONENT = "app.kubernetes.io/component"
    LABEL_OWNER = "kubespace.io/owner"
    LABEL_WORKSPACE = "kubespace.io/workspace"
    LABEL_CLAIM_ROLE = "kubespace.io/claim-role"

    MANAGED_BY = "kubespace"
    APP_NAME = "coder-workspace"

    # Annotation keys
    ANNOTATION_SPEC_HASH = "kubespace.io/spec-hash"
    ANNOTATION_APPS = "kubespace.io/apps"
    ANNOTATION_AGENT_ID = "kubespace.io/agent-id"
    ANNOTATION_OWNER_EMAIL = "kubespace.io/owner-email"

    # Containers and volumes
    CONTAINER_DEV = "dev"
    CONTAINER_DIND = "dind"
    VOLUME_HOME = "home"
    VOLUME_DIND = "dind-storage"

    ACCESS_MODE = "ReadWriteOnce"

    ENV_AGENT_TOKEN = "CODER_AGENT_TOKEN"
