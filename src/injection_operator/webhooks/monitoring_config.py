"""
Validating admission webhook for MonitoringConfig resources.

This webhook validates MonitoringConfigs before they are accepted by
Kubernetes, enforcing:
- A well-formed specification
- A parseable proxy URL, given inline or through a secret
- A proxy password the agent installer can evaluate
"""

import asyncio
import base64
import logging

import kopf
from kubernetes import client
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from injection_operator.constants import (
    MONITORING_CONFIG_GROUP,
    MONITORING_CONFIG_PLURAL,
    MONITORING_CONFIG_VERSION,
    PROXY_SECRET_KEY,
)
from injection_operator.models.monitoring_config import MonitoringConfigSpec
from injection_operator.observability.tracing import traced_handler
from injection_operator.utils.kubernetes import CLUSTER_ERRORS, error_reason
from injection_operator.utils.validation import ValidationError as ProxyValidationError
from injection_operator.utils.validation import validate_proxy_url

logger = logging.getLogger(__name__)

ERROR_INVALID_PROXY_URL = (
    "The MonitoringConfig's specification has an invalid Proxy URL value set. "
    "Make sure you correctly specify the URL in your custom resource."
)
ERROR_INVALID_EVAL_CHARACTER = (
    "The MonitoringConfig's specification has an invalid Proxy password value set. "
    "Make sure you don't use forbidden characters."
)
ERROR_MISSING_PROXY_SECRET = (
    "The Proxy secret indicated by the MonitoringConfig specification doesn't exist."
)
ERROR_INVALID_PROXY_SECRET_FORMAT = (
    "The Proxy secret indicated by the MonitoringConfig specification has an "
    "invalid format. Make sure you correctly create the secret."
)
ERROR_INVALID_PROXY_SECRET_URL = (
    "The Proxy secret indicated by the MonitoringConfig specification has an "
    "invalid URL value set. Make sure you correctly specify the URL in the secret."
)
ERROR_INVALID_PROXY_SECRET_EVAL_CHARACTER = (
    "The Proxy secret indicated by the MonitoringConfig specification has an "
    "invalid Proxy password value set. Make sure you don't use forbidden characters."
)


async def read_proxy_secret(name: str, namespace: str) -> client.V1Secret:
    api = client.CoreV1Api()
    return await asyncio.to_thread(
        api.read_namespaced_secret, name=name, namespace=namespace
    )


async def validate_proxy(spec: MonitoringConfigSpec, namespace: str) -> None:
    """
    Validate the proxy of a MonitoringConfig.

    Raises:
        ProxyValidationError: If the proxy or its secret is invalid
    """
    proxy = spec.proxy
    if proxy is None:
        return

    if proxy.value_from:
        try:
            secret = await read_proxy_secret(proxy.value_from, namespace)
        except CLUSTER_ERRORS as e:
            if isinstance(e, ApiException) and e.status == 404:
                raise ProxyValidationError(
                    ERROR_MISSING_PROXY_SECRET, field="proxy.valueFrom"
                ) from e
            raise ProxyValidationError(
                f"error occurred while reading the proxy secret indicated in the "
                f"MonitoringConfig specification: {error_reason(e)}",
                field="proxy.valueFrom",
            ) from e

        data = secret.data or {}
        if PROXY_SECRET_KEY not in data:
            raise ProxyValidationError(
                ERROR_INVALID_PROXY_SECRET_FORMAT, field="proxy.valueFrom"
            )
        proxy_url = base64.b64decode(data[PROXY_SECRET_KEY]).decode()
        validate_proxy_url(
            proxy_url,
            ERROR_INVALID_PROXY_SECRET_URL,
            ERROR_INVALID_PROXY_SECRET_EVAL_CHARACTER,
        )
    elif proxy.value:
        validate_proxy_url(
            proxy.value, ERROR_INVALID_PROXY_URL, ERROR_INVALID_EVAL_CHARACTER
        )


@kopf.on.validate(
    MONITORING_CONFIG_GROUP,
    MONITORING_CONFIG_VERSION,
    MONITORING_CONFIG_PLURAL,
    id="validate-monitoring-config",
)
@traced_handler("validate_monitoring_config")
async def validate_monitoring_config(
    spec: dict,
    namespace: str,
    name: str,
    operation: str,
    dryrun: bool,
    **kwargs,
) -> dict:
    """
    Validate MonitoringConfig resource before admission.

    Args:
        spec: Resource specification
        namespace: Resource namespace
        name: Resource name
        operation: CREATE or UPDATE
        dryrun: Whether this is a dry-run request

    Returns:
        Empty dict when the resource is allowed

    Raises:
        kopf.AdmissionError: If validation fails
    """
    logger.info(
        f"Validating MonitoringConfig {name} in namespace {namespace} "
        f"(operation: {operation}, dryrun: {dryrun})"
    )

    try:
        config_spec = MonitoringConfigSpec.model_validate(spec)
    except ValidationError as e:
        error_msg = f"Invalid MonitoringConfig specification: {e}"
        logger.warning(f"MonitoringConfig {name} validation failed: {error_msg}")
        raise kopf.AdmissionError(error_msg) from e

    try:
        await validate_proxy(config_spec, namespace)
    except ProxyValidationError as e:
        logger.warning(f"MonitoringConfig {name} rejected: {e}")
        raise kopf.AdmissionError(str(e)) from e

    logger.info(f"MonitoringConfig {name} validation passed")
    return {}
