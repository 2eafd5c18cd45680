"""
Helpers for reading and extending pod manifests.

Pods are handled as the decoded JSON dicts received from the API server.
All helpers only ever append; existing entries are never overwritten.
"""

import copy
import logging
from typing import Any

from injection_operator.constants import (
    ANNOTATION_FAILURE_POLICY,
    ANNOTATION_INJECTED,
    CONFIG_DIR_MOUNT,
    CONTAINER_COUNT_ENV,
    CONTAINER_IMAGE_ENV_TEMPLATE,
    CONTAINER_NAME_ENV_TEMPLATE,
    DEFAULT_FAILURE_POLICY,
    DEPLOYMENT_METADATA_ENV,
    FAILURE_POLICY_ENV,
    FAILURE_POLICY_FAIL,
    INIT_SECRET_NAME,
    INJECTION_CONFIG_VOLUME_NAME,
    INSTALL_CONTAINER_ARGS,
    INSTALL_CONTAINER_NAME,
    K8S_BASE_POD_NAME_ENV,
    K8S_NAMESPACE_ENV,
    K8S_NODE_NAME_ENV,
    K8S_POD_NAME_ENV,
    K8S_POD_UID_ENV,
    ORCHESTRATION_TECH,
)
from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.utils.kubernetes import field_env_var, get_field

logger = logging.getLogger(__name__)


def annotations(pod: dict[str, Any]) -> dict[str, str]:
    return (pod.get("metadata") or {}).get("annotations") or {}


def set_annotation(pod: dict[str, Any], key: str, value: str) -> None:
    metadata = pod.setdefault("metadata", {})
    if metadata.get("annotations") is None:
        metadata["annotations"] = {}
    metadata["annotations"][key] = value


def containers(pod: dict[str, Any]) -> list[dict[str, Any]]:
    return (pod.get("spec") or {}).get("containers") or []


def is_injected(pod: dict[str, Any]) -> bool:
    return bool(annotations(pod).get(ANNOTATION_INJECTED))


def has_env(container: dict[str, Any], name: str) -> bool:
    return any(env.get("name") == name for env in container.get("env") or [])


def append_env(container: dict[str, Any], *env_vars: dict[str, Any]) -> None:
    if container.get("env") is None:
        container["env"] = []
    container["env"].extend(env_vars)


def has_volume_mount(container: dict[str, Any], name: str) -> bool:
    return any(mount.get("name") == name for mount in container.get("volumeMounts") or [])


def append_volume_mounts(container: dict[str, Any], *mounts: dict[str, Any]) -> None:
    if container.get("volumeMounts") is None:
        container["volumeMounts"] = []
    container["volumeMounts"].extend(mounts)


def append_volumes(pod: dict[str, Any], *volumes: dict[str, Any]) -> None:
    spec = pod.setdefault("spec", {})
    if spec.get("volumes") is None:
        spec["volumes"] = []
    spec["volumes"].extend(volumes)


def has_volume(pod: dict[str, Any], name: str) -> bool:
    return any(
        volume.get("name") == name for volume in (pod.get("spec") or {}).get("volumes") or []
    )


def add_container_info_env(
    init_container: dict[str, Any], index: int, container: dict[str, Any]
) -> None:
    """
    Record an application container in the init container's bookkeeping.

    index is 0-based, the env vars are 1-based. Adding the same container
    twice is a no-op, so every mutator may call this for every container.
    """
    name_env = CONTAINER_NAME_ENV_TEMPLATE.format(index=index + 1)
    if has_env(init_container, name_env):
        return

    logger.info(
        f"Updating init container with new container {container.get('name')} "
        f"({container.get('image')})"
    )
    append_env(
        init_container,
        {"name": name_env, "value": container.get("name", "")},
        {
            "name": CONTAINER_IMAGE_ENV_TEMPLATE.format(index=index + 1),
            "value": container.get("image", ""),
        },
    )


def deployment_metadata(deployment_type: str, operator_version: str, cluster_id: str) -> str:
    return (
        f"orchestration_tech={ORCHESTRATION_TECH}-{deployment_type};"
        f"script_version={operator_version};"
        f"orchestrator_id={cluster_id}"
    )


def add_deployment_metadata_if_missing(
    container: dict[str, Any],
    config: MonitoringConfig,
    operator_version: str,
    cluster_id: str,
) -> None:
    if has_env(container, DEPLOYMENT_METADATA_ENV):
        return
    append_env(
        container,
        {
            "name": DEPLOYMENT_METADATA_ENV,
            "value": deployment_metadata(
                config.deployment_type(), operator_version, cluster_id
            ),
        },
    )


def get_base_pod_name(pod: dict[str, Any]) -> str:
    """Pod name without the last dash-delimited generated suffix."""
    metadata = pod.get("metadata") or {}
    base_pod_name = metadata.get("generateName") or metadata.get("name") or ""

    # Only include up to the last dash character, exclusive
    index = base_pod_name.rfind("-")
    if index != -1:
        base_pod_name = base_pod_name[:index]
    return base_pod_name


def get_failure_policy(pod: dict[str, Any]) -> str:
    policy = get_field(annotations(pod), ANNOTATION_FAILURE_POLICY, DEFAULT_FAILURE_POLICY)
    if policy != FAILURE_POLICY_FAIL:
        return DEFAULT_FAILURE_POLICY
    return policy


def build_install_init_container(
    pod: dict[str, Any], image: str, config: MonitoringConfig
) -> dict[str, Any]:
    """
    Create the skeleton of the install init container.

    Mutators extend it with their own env vars and mounts before it's
    appended to the pod.
    """
    pod_containers = containers(pod)
    init_container: dict[str, Any] = {
        "name": INSTALL_CONTAINER_NAME,
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "args": list(INSTALL_CONTAINER_ARGS),
        "env": [
            {"name": CONTAINER_COUNT_ENV, "value": str(len(pod_containers))},
            {"name": FAILURE_POLICY_ENV, "value": get_failure_policy(pod)},
            field_env_var(K8S_POD_NAME_ENV, "metadata.name"),
            field_env_var(K8S_POD_UID_ENV, "metadata.uid"),
            {"name": K8S_BASE_POD_NAME_ENV, "value": get_base_pod_name(pod)},
            field_env_var(K8S_NAMESPACE_ENV, "metadata.namespace"),
            field_env_var(K8S_NODE_NAME_ENV, "spec.nodeName"),
        ],
        "volumeMounts": [
            {"name": INJECTION_CONFIG_VOLUME_NAME, "mountPath": CONFIG_DIR_MOUNT},
        ],
    }

    if pod_containers and pod_containers[0].get("securityContext"):
        init_container["securityContext"] = copy.deepcopy(
            pod_containers[0]["securityContext"]
        )

    resources = config.init_resources()
    if resources:
        init_container["resources"] = copy.deepcopy(resources)

    return init_container


def add_init_container(pod: dict[str, Any], init_container: dict[str, Any]) -> None:
    spec = pod.setdefault("spec", {})
    if spec.get("initContainers") is None:
        spec["initContainers"] = []
    spec["initContainers"].append(init_container)


def find_install_init_container(pod: dict[str, Any]) -> dict[str, Any] | None:
    for init_container in (pod.get("spec") or {}).get("initContainers") or []:
        if init_container.get("name") == INSTALL_CONTAINER_NAME:
            return init_container
    return None


def add_injection_config_volume(pod: dict[str, Any]) -> None:
    if has_volume(pod, INJECTION_CONFIG_VOLUME_NAME):
        return
    append_volumes(
        pod,
        {
            "name": INJECTION_CONFIG_VOLUME_NAME,
            "secret": {"secretName": INIT_SECRET_NAME},
        },
    )
