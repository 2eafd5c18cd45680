"""Environment variables of the agent capability."""

from dataclasses import dataclass
from typing import Any

from injection_operator.constants import (
    AGENT_INJECTED_ENV,
    INIT_SECRET_NAME,
    INSTALL_PATH_ENV,
    INSTALLER_FLAVOR_ENV,
    INSTALLER_TECH_ENV,
    INSTALLER_URL_ENV,
    MODE_ENV,
    NETWORK_ZONE_ENV,
    PRELOAD_ENV,
    PRELOAD_LIBRARY_PATH,
    PROXY_ENV,
    PROXY_SECRET_KEY,
)
from injection_operator.mutation.podspec import append_env


@dataclass(frozen=True)
class InstallerInfo:
    """Agent installer settings taken from pod annotations."""

    flavor: str
    technologies: str
    install_path: str
    installer_url: str


def add_installer_init_env(
    init_container: dict[str, Any], installer: InstallerInfo, volume_mode: str
) -> None:
    append_env(
        init_container,
        {"name": INSTALLER_FLAVOR_ENV, "value": installer.flavor},
        {"name": INSTALLER_TECH_ENV, "value": installer.technologies},
        {"name": INSTALL_PATH_ENV, "value": installer.install_path},
        {"name": INSTALLER_URL_ENV, "value": installer.installer_url},
        {"name": MODE_ENV, "value": volume_mode},
        {"name": AGENT_INJECTED_ENV, "value": "true"},
    )


def add_preload_env(container: dict[str, Any], install_path: str) -> None:
    append_env(
        container,
        {"name": PRELOAD_ENV, "value": install_path + PRELOAD_LIBRARY_PATH},
    )


def add_proxy_env(container: dict[str, Any]) -> None:
    append_env(
        container,
        {
            "name": PROXY_ENV,
            "valueFrom": {
                "secretKeyRef": {"name": INIT_SECRET_NAME, "key": PROXY_SECRET_KEY}
            },
        },
    )


def add_network_zone_env(container: dict[str, Any], network_zone: str) -> None:
    append_env(container, {"name": NETWORK_ZONE_ENV, "value": network_zone})
