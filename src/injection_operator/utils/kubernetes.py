"""
Kubernetes utilities for the injection operator.

This module provides helper functions for interacting with the Kubernetes API.

Key functionality:
- Kubernetes client management and configuration
- The cluster collaborator used by the admission handler and the mutators
- Small helpers for pod manifests (downward-API env vars, annotation fields)
"""

import asyncio
import logging
from typing import Any

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from injection_operator.constants import (
    MONITORING_CONFIG_GROUP,
    MONITORING_CONFIG_PLURAL,
    MONITORING_CONFIG_VERSION,
)

logger = logging.getLogger(__name__)

PARTIAL_METADATA_ACCEPT = (
    "application/json;as=PartialObjectMetadata;g=meta.k8s.io;v=v1,application/json"
)

# Raised by ClusterClient calls: API status errors and transport failures
# (connection refused, retries exhausted, _request_timeout expired)
CLUSTER_ERRORS = (ApiException, urllib3.exceptions.HTTPError)


def get_kubernetes_client() -> client.ApiClient:
    """
    Get configured Kubernetes API client.

    This function handles both in-cluster and local development configurations.

    Returns:
        Configured Kubernetes API client
    """
    try:
        # Try in-cluster config first (when running in a pod)
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            # Fall back to local kubeconfig (for development)
            config.load_kube_config()
            logger.debug("Loaded kubeconfig from local environment")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    return client.ApiClient()


def error_reason(e: Exception) -> str:
    """Short description of a cluster error for log lines and messages."""
    if isinstance(e, ApiException):
        return str(e.reason)
    return str(e) or type(e).__name__


def field_env_var(name: str, field_path: str) -> dict[str, Any]:
    """Env var whose value is taken from a pod field via the downward API."""
    return {"name": name, "valueFrom": {"fieldRef": {"fieldPath": field_path}}}


def get_field(values: dict[str, str] | None, key: str, default: str) -> str:
    """Return values[key], or default when the map or the key is missing."""
    if not values or key not in values:
        return default
    return values[key]


def get_field_bool(values: dict[str, str] | None, key: str, default: bool) -> bool:
    """Parse values[key] as a boolean, falling back to default on anything else."""
    raw = get_field(values, key, "").strip().lower()
    if raw == "true":
        return True
    if raw == "false":
        return False
    return default


def object_path(api_version: str, plural: str, name: str, namespace: str) -> str:
    """Build the REST path of a namespaced object from its apiVersion."""
    if "/" in api_version:
        base = f"/apis/{api_version}"
    else:
        base = f"/api/{api_version}"
    return f"{base}/namespaces/{namespace}/{plural}/{name}"


class ClusterClient:
    """
    Cluster collaborator for the pod mutation webhook.

    Every call is blocking on the Kubernetes side and is run in a worker
    thread, bounded by a per-call request timeout. Errors are raised as
    ``ApiException`` or a urllib3 transport error (see ``CLUSTER_ERRORS``)
    and translated by the caller.
    """

    def __init__(
        self,
        k8s_client: client.ApiClient | None = None,
        request_timeout: float = 5.0,
    ):
        """
        Initialize the cluster client.

        Args:
            k8s_client: Kubernetes API client
            request_timeout: Timeout in seconds for each API call
        """
        self.k8s_client = k8s_client or client.ApiClient()
        self.request_timeout = request_timeout
        self.core_v1 = client.CoreV1Api(self.k8s_client)
        self.custom_objects = client.CustomObjectsApi(self.k8s_client)

    async def read_namespace(self, name: str) -> client.V1Namespace:
        return await asyncio.to_thread(
            self.core_v1.read_namespace,
            name=name,
            _request_timeout=self.request_timeout,
        )

    async def read_monitoring_config(self, name: str, namespace: str) -> dict:
        return await asyncio.to_thread(
            self.custom_objects.get_namespaced_custom_object,
            group=MONITORING_CONFIG_GROUP,
            version=MONITORING_CONFIG_VERSION,
            namespace=namespace,
            plural=MONITORING_CONFIG_PLURAL,
            name=name,
            _request_timeout=self.request_timeout,
        )

    async def read_secret(self, name: str, namespace: str) -> client.V1Secret:
        return await asyncio.to_thread(
            self.core_v1.read_namespaced_secret,
            name=name,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )

    async def create_secret(
        self, namespace: str, body: dict[str, Any]
    ) -> client.V1Secret:
        return await asyncio.to_thread(
            self.core_v1.create_namespaced_secret,
            namespace=namespace,
            body=body,
            _request_timeout=self.request_timeout,
        )

    async def read_object_metadata(
        self, api_version: str, plural: str, name: str, namespace: str
    ) -> dict[str, Any]:
        """
        Read only the metadata of a namespaced object.

        Args:
            api_version: apiVersion of the object (e.g. apps/v1)
            plural: Resource plural (e.g. replicasets)
            name: Object name
            namespace: Object namespace

        Returns:
            PartialObjectMetadata as a dict
        """
        return await asyncio.to_thread(
            self.k8s_client.call_api,
            object_path(api_version, plural, name, namespace),
            "GET",
            header_params={"Accept": PARTIAL_METADATA_ACCEPT},
            auth_settings=["BearerToken"],
            response_type="object",
            _return_http_data_only=True,
            _request_timeout=self.request_timeout,
        )

    async def create_event(self, namespace: str, body: dict[str, Any]) -> None:
        await asyncio.to_thread(
            self.core_v1.create_namespaced_event,
            namespace=namespace,
            body=body,
            _request_timeout=self.request_timeout,
        )

    async def read_pod(self, name: str, namespace: str) -> client.V1Pod:
        return await asyncio.to_thread(
            self.core_v1.read_namespaced_pod,
            name=name,
            namespace=namespace,
            _request_timeout=self.request_timeout,
        )
