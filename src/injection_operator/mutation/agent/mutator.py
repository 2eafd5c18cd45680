"""
Agent capability mutator.

Injects the monitoring agent into application containers: the install init
container downloads (or receives through the CSI driver) the agent binaries
into a shared volume, and every application container preloads the agent
library from there.
"""

import logging
from typing import Any

from injection_operator.constants import (
    AGENT_BIN_VOLUME_NAME,
    AGENT_INJECTED_ENV,
    AGENT_SHARE_VOLUME_NAME,
    ANNOTATION_AGENT_INJECT,
    ANNOTATION_AGENT_INJECTED,
    ANNOTATION_FLAVOR,
    ANNOTATION_INSTALL_PATH,
    ANNOTATION_INSTALLER_URL,
    ANNOTATION_TECHNOLOGIES,
    DEFAULT_FLAVOR,
    DEFAULT_INSTALL_PATH,
    DEFAULT_TECHNOLOGIES,
    INSTALL_PATH_ENV,
    INSTALLER_FLAVOR_ENV,
    INSTALLER_TECH_ENV,
    INSTALLER_URL_ENV,
    INSTALLER_VOLUME_MODE,
    MODE_ENV,
    NETWORK_ZONE_ENV,
    PRELOAD_ENV,
    PROVISIONED_VOLUME_MODE,
    PROXY_ENV,
)
from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.mutation.agent.env import (
    InstallerInfo,
    add_installer_init_env,
    add_network_zone_env,
    add_preload_env,
    add_proxy_env,
)
from injection_operator.mutation.agent.volumes import (
    add_agent_volume_mounts,
    add_agent_volumes,
    add_init_volume_mounts,
)
from injection_operator.mutation.context import MutationContext, ReinvocationContext
from injection_operator.mutation.podspec import (
    add_container_info_env,
    add_deployment_metadata_if_missing,
    annotations,
    containers,
    has_env,
    set_annotation,
)
from injection_operator.utils.kubernetes import get_field, get_field_bool
from injection_operator.utils.secret_manager import SecretProvisioner

logger = logging.getLogger(__name__)


class AgentPodMutator:
    """Injects the agent binaries and preload configuration."""

    name = "agent"
    owned_env_vars = frozenset(
        {
            INSTALLER_FLAVOR_ENV,
            INSTALLER_TECH_ENV,
            INSTALL_PATH_ENV,
            INSTALLER_URL_ENV,
            MODE_ENV,
            AGENT_INJECTED_ENV,
            PRELOAD_ENV,
            PROXY_ENV,
            NETWORK_ZONE_ENV,
        }
    )
    owned_volumes = frozenset({AGENT_BIN_VOLUME_NAME, AGENT_SHARE_VOLUME_NAME})

    def __init__(
        self,
        secrets: SecretProvisioner,
        cluster_id: str,
        operator_version: str,
    ):
        self.secrets = secrets
        self.cluster_id = cluster_id
        self.operator_version = operator_version

    def enabled(self, pod: dict[str, Any]) -> bool:
        return get_field_bool(annotations(pod), ANNOTATION_AGENT_INJECT, True)

    def pod_injected(self, pod: dict[str, Any]) -> bool:
        return get_field_bool(annotations(pod), ANNOTATION_AGENT_INJECTED, False)

    def container_injected(self, container: dict[str, Any]) -> bool:
        return has_env(container, PRELOAD_ENV)

    async def mutate(self, ctx: MutationContext) -> None:
        logger.info(f"Injecting agent into pod in namespace {ctx.namespace}")
        await self.secrets.ensure_init_secret(ctx.config, ctx.namespace)

        installer = self._installer_info(ctx.pod)
        add_agent_volumes(ctx.pod, ctx.config)
        add_installer_init_env(
            ctx.init_container, installer, self._volume_mode(ctx.config)
        )
        add_init_volume_mounts(ctx.init_container)

        for index, container in enumerate(containers(ctx.pod)):
            add_container_info_env(ctx.init_container, index, container)
            self._add_agent_to_container(container, ctx.config, installer.install_path)

        set_annotation(ctx.pod, ANNOTATION_AGENT_INJECTED, "true")

    def reinvoke(self, ctx: ReinvocationContext) -> None:
        container = ctx.container
        if ctx.init_container is not None:
            add_container_info_env(ctx.init_container, ctx.container_index, container)
        install_path = self._installer_info(ctx.pod).install_path
        self._add_agent_to_container(container, ctx.config, install_path)

    def _add_agent_to_container(
        self, container: dict[str, Any], config: MonitoringConfig, install_path: str
    ) -> None:
        logger.info(
            f"Updating container {container.get('name')} with missing preload variables"
        )
        add_agent_volume_mounts(container, install_path)
        add_deployment_metadata_if_missing(
            container, config, self.operator_version, self.cluster_id
        )
        add_preload_env(container, install_path)

        if config.has_proxy():
            add_proxy_env(container)

        if config.spec.network_zone:
            add_network_zone_env(container, config.spec.network_zone)

    def _installer_info(self, pod: dict[str, Any]) -> InstallerInfo:
        pod_annotations = annotations(pod)
        return InstallerInfo(
            flavor=get_field(pod_annotations, ANNOTATION_FLAVOR, DEFAULT_FLAVOR),
            technologies=get_field(
                pod_annotations, ANNOTATION_TECHNOLOGIES, DEFAULT_TECHNOLOGIES
            ),
            install_path=get_field(
                pod_annotations, ANNOTATION_INSTALL_PATH, DEFAULT_INSTALL_PATH
            ),
            installer_url=get_field(pod_annotations, ANNOTATION_INSTALLER_URL, ""),
        )

    @staticmethod
    def _volume_mode(config: MonitoringConfig) -> str:
        if config.needs_csi_driver():
            return PROVISIONED_VOLUME_MODE
        return INSTALLER_VOLUME_MODE
