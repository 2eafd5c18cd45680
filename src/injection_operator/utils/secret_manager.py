"""
Secret provisioning for injected namespaces.

Capability mutators need supporting secrets in the pod's namespace before the
pod can reference them. This module implements their idempotent get-or-create:
an existing secret is left untouched, a missing one is generated from the
MonitoringConfig and the tokens secret in the operator namespace.
"""

import base64
import json
import logging
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from injection_operator.constants import (
    API_TOKEN_KEY,
    DATA_INGEST_TOKEN_KEY,
    ENDPOINT_SECRET_KEY,
    ENDPOINT_SECRET_NAME,
    INIT_SECRET_CONFIG_KEY,
    INIT_SECRET_NAME,
    MANAGED_BY_LABEL_KEY,
    MANAGED_BY_LABEL_VALUE,
    PROXY_SECRET_KEY,
)
from injection_operator.errors import ProvisioningError
from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.utils.kubernetes import CLUSTER_ERRORS, ClusterClient, error_reason

logger = logging.getLogger(__name__)


def _encode(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def _decode_key(secret: client.V1Secret, key: str) -> str:
    data = secret.data or {}
    if key not in data:
        return ""
    return base64.b64decode(data[key]).decode()


class SecretProvisioner:
    """Get-or-create of the init and endpoint secrets."""

    def __init__(self, cluster: ClusterClient, operator_namespace: str, cluster_id: str):
        """
        Initialize secret provisioner.

        Args:
            cluster: Cluster collaborator
            operator_namespace: Namespace holding MonitoringConfigs and token secrets
            cluster_id: UID of the kube-system namespace
        """
        self.cluster = cluster
        self.operator_namespace = operator_namespace
        self.cluster_id = cluster_id

    async def ensure_init_secret(self, config: MonitoringConfig, namespace: str) -> None:
        """
        Make sure the injection config secret exists in namespace.

        Raises:
            ProvisioningError: If the secret can't be read or created
        """
        await self._ensure(INIT_SECRET_NAME, namespace, config, self._init_secret_data)

    async def ensure_endpoint_secret(
        self, config: MonitoringConfig, namespace: str
    ) -> None:
        """
        Make sure the data-enrichment endpoint secret exists in namespace.

        Raises:
            ProvisioningError: If the secret can't be read or created
        """
        await self._ensure(
            ENDPOINT_SECRET_NAME, namespace, config, self._endpoint_secret_data
        )

    async def _ensure(self, name, namespace, config, build_data) -> None:
        try:
            await self.cluster.read_secret(name, namespace)
            return
        except CLUSTER_ERRORS as e:
            if not (isinstance(e, ApiException) and e.status == 404):
                logger.error(
                    f"Failed to query secret {namespace}/{name} before pod injection: "
                    f"{error_reason(e)}"
                )
                raise ProvisioningError(name, namespace, cause=e) from e

        try:
            data = await build_data(config)
            await self.cluster.create_secret(namespace, self._secret_body(name, namespace, data))
            logger.info(f"Created secret {namespace}/{name} for MonitoringConfig {config.name}")
        except CLUSTER_ERRORS as e:
            if isinstance(e, ApiException) and e.status == 409:
                # Created concurrently by another admission request
                logger.debug(f"Secret {namespace}/{name} already exists")
                return
            logger.error(f"Failed to create secret {namespace}/{name}: {error_reason(e)}")
            raise ProvisioningError(name, namespace, cause=e) from e

    def _secret_body(self, name: str, namespace: str, data: dict[str, str]) -> dict[str, Any]:
        return {
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": {MANAGED_BY_LABEL_KEY: MANAGED_BY_LABEL_VALUE},
            },
            "type": "Opaque",
            "data": {key: _encode(value) for key, value in data.items()},
        }

    async def _read_tokens(self, config: MonitoringConfig) -> client.V1Secret:
        return await self.cluster.read_secret(
            config.tokens_secret_name, self.operator_namespace
        )

    async def _resolve_proxy(self, config: MonitoringConfig) -> str:
        proxy = config.spec.proxy
        if proxy is None:
            return ""
        if proxy.value_from:
            secret = await self.cluster.read_secret(proxy.value_from, self.operator_namespace)
            return _decode_key(secret, PROXY_SECRET_KEY)
        return proxy.value or ""

    async def _init_secret_data(self, config: MonitoringConfig) -> dict[str, str]:
        tokens = await self._read_tokens(config)
        proxy = await self._resolve_proxy(config)
        injection_config = {
            "apiUrl": config.spec.api_url,
            "apiToken": _decode_key(tokens, API_TOKEN_KEY),
            "networkZone": config.spec.network_zone or "",
            "skipCertCheck": config.spec.skip_cert_check,
            "clusterID": self.cluster_id,
            "monitoringConfig": config.name,
            "hasProxy": bool(proxy),
        }
        return {
            INIT_SECRET_CONFIG_KEY: json.dumps(injection_config),
            PROXY_SECRET_KEY: proxy,
        }

    async def _endpoint_secret_data(self, config: MonitoringConfig) -> dict[str, str]:
        tokens = await self._read_tokens(config)
        properties = (
            f"METRICS_INGEST_URL={config.spec.api_url}/v2/metrics/ingest\n"
            f"METRICS_INGEST_API_TOKEN={_decode_key(tokens, DATA_INGEST_TOKEN_KEY)}\n"
        )
        return {ENDPOINT_SECRET_KEY: properties}
