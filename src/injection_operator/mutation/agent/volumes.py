"""Volumes and volume mounts of the agent capability."""

from typing import Any

from injection_operator.constants import (
    AGENT_BIN_VOLUME_NAME,
    AGENT_SHARE_VOLUME_NAME,
    BIN_DIR_MOUNT,
    CONTAINER_CONF_MOUNT_PATH,
    CSI_APP_MODE,
    CSI_DRIVER_NAME,
    CSI_VOLUME_ATTRIBUTE_CONFIG,
    CSI_VOLUME_ATTRIBUTE_MODE,
    CUSTOM_KEYS_MOUNT_PATH,
    CUSTOM_KEYS_SUB_PATH,
    LD_PRELOAD_MOUNT_PATH,
    LD_PRELOAD_SUB_PATH,
    SHARE_DIR_MOUNT,
)
from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.mutation.podspec import append_volume_mounts, append_volumes


def installer_volume_source(config: MonitoringConfig) -> dict[str, Any]:
    if config.needs_csi_driver():
        return {
            "csi": {
                "driver": CSI_DRIVER_NAME,
                "volumeAttributes": {
                    CSI_VOLUME_ATTRIBUTE_MODE: CSI_APP_MODE,
                    CSI_VOLUME_ATTRIBUTE_CONFIG: config.name,
                },
            }
        }
    return {"emptyDir": {}}


def add_agent_volumes(pod: dict[str, Any], config: MonitoringConfig) -> None:
    append_volumes(
        pod,
        {"name": AGENT_BIN_VOLUME_NAME, **installer_volume_source(config)},
        {"name": AGENT_SHARE_VOLUME_NAME, "emptyDir": {}},
    )


def add_init_volume_mounts(init_container: dict[str, Any]) -> None:
    append_volume_mounts(
        init_container,
        {"name": AGENT_BIN_VOLUME_NAME, "mountPath": BIN_DIR_MOUNT},
        {"name": AGENT_SHARE_VOLUME_NAME, "mountPath": SHARE_DIR_MOUNT},
    )


def add_agent_volume_mounts(container: dict[str, Any], install_path: str) -> None:
    append_volume_mounts(
        container,
        {
            "name": AGENT_SHARE_VOLUME_NAME,
            "mountPath": LD_PRELOAD_MOUNT_PATH,
            "subPath": LD_PRELOAD_SUB_PATH,
        },
        {"name": AGENT_BIN_VOLUME_NAME, "mountPath": install_path},
        {
            "name": AGENT_SHARE_VOLUME_NAME,
            "mountPath": CONTAINER_CONF_MOUNT_PATH,
            "subPath": f"container_{container.get('name', '')}.conf",
        },
        {
            "name": AGENT_SHARE_VOLUME_NAME,
            "mountPath": CUSTOM_KEYS_MOUNT_PATH,
            "subPath": CUSTOM_KEYS_SUB_PATH,
        },
    )
