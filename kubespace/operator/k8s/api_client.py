"""K8s API Client with rate limiting.

Thin wrapper around Kubernetes ``CoreV1Api`` for the resources a workspace
owns (namespaces are only read, claims and pods are read, created and
deleted):
- Rate limiting using aiolimiter (configurable QPS)
- Blocking client calls moved off the event loop with ``asyncio.to_thread``
- Reads return plain manifest dicts, or None when the object does not exist
"""

import asyncio
from typing import Any

from aiolimiter import AsyncLimiter
from kubernetes import client

from kubespace.logger import init_logger

logger = init_logger(__name__)


class K8sApiClient:
    """CoreV1 client wrapper with rate limiting."""

    def __init__(self, api_client: client.ApiClient, qps: float = 5.0):
        """Initialize K8s API client.

        Args:
            api_client: Kubernetes ApiClient instance
            qps: Queries per second limit (default: 5 for small clusters)
        """
        self._api_client = api_client
        self._core_api = client.CoreV1Api(api_client)
        self._rate_limiter = AsyncLimiter(max_rate=qps, time_period=1.0)

    async def _call(self, method, **kwargs) -> Any:
        async with self._rate_limiter:
            return await asyncio.to_thread(method, **kwargs)

    async def _read(self, method, **kwargs) -> dict[str, Any] | None:
        try:
            obj = await self._call(method, **kwargs)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise
        return self._to_dict(obj)

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self._api_client.sanitize_for_serialization(obj)

    async def namespace_exists(self, namespace: str) -> bool:
        return await self._read(self._core_api.read_namespace, name=namespace) is not None

    async def get_claim(self, name: str, namespace: str) -> dict[str, Any] | None:
        return await self._read(
            self._core_api.read_namespaced_persistent_volume_claim, name=name, namespace=namespace
        )

    async def create_claim(self, body: dict[str, Any], namespace: str) -> dict[str, Any]:
        created = await self._call(
            self._core_api.create_namespaced_persistent_volume_claim, namespace=namespace, body=body
        )
        return self._to_dict(created)

    async def delete_claim(self, name: str, namespace: str) -> None:
        await self._call(self._core_api.delete_namespaced_persistent_volume_claim, name=name, namespace=namespace)

    async def get_pod(self, name: str, namespace: str) -> dict[str, Any] | None:
        return await self._read(self._core_api.read_namespaced_pod, name=name, namespace=namespace)

    async def create_pod(self, body: dict[str, Any], namespace: str) -> dict[str, Any]:
        created = await self._call(self._core_api.create_namespaced_pod, namespace=namespace, body=body)
        return self._to_dict(created)

    async def delete_pod(self, name: str, namespace: str, grace_period_seconds: int | None = None) -> None:
        kwargs = {"name": name, "namespace": namespace}
        if grace_period_seconds is not None:
            kwargs["grace_period_seconds"] = grace_period_seconds
        await self._call(self._core_api.delete_namespaced_pod, **kwargs)
