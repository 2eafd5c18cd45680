"""
Data-enrichment capability mutator.

Writes workload metadata for the monitored processes: the install init
container receives the resolved owning workload and fills the shared
enrichment volume, which every application container mounts next to the
metrics ingest endpoint secret.
"""

import logging
from typing import Any

from injection_operator.constants import (
    ANNOTATION_DATA_ENRICHMENT_INJECT,
    ANNOTATION_DATA_ENRICHMENT_INJECTED,
    DATA_ENRICHMENT_ENDPOINT_VOLUME_NAME,
    DATA_ENRICHMENT_INJECTED_ENV,
    DATA_ENRICHMENT_VOLUME_NAME,
    ENDPOINT_SECRET_NAME,
    ENRICHMENT_DIR_MOUNT,
    ENRICHMENT_ENDPOINT_PATH,
    ENRICHMENT_PATH,
    WORKLOAD_KIND_ENV,
    WORKLOAD_NAME_ENV,
)
from injection_operator.errors import OwnerResolutionError
from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.models.workload import WorkloadInfo
from injection_operator.mutation.context import MutationContext, ReinvocationContext
from injection_operator.mutation.owner import OwnerChainResolver
from injection_operator.mutation.podspec import (
    add_container_info_env,
    add_deployment_metadata_if_missing,
    annotations,
    append_env,
    append_volume_mounts,
    append_volumes,
    containers,
    has_volume_mount,
    set_annotation,
)
from injection_operator.utils.kubernetes import get_field_bool
from injection_operator.utils.secret_manager import SecretProvisioner

logger = logging.getLogger(__name__)


class DataEnrichmentPodMutator:
    """Injects workload enrichment files and the ingest endpoint."""

    name = "data-enrichment"
    owned_env_vars = frozenset(
        {WORKLOAD_KIND_ENV, WORKLOAD_NAME_ENV, DATA_ENRICHMENT_INJECTED_ENV}
    )
    owned_volumes = frozenset(
        {DATA_ENRICHMENT_VOLUME_NAME, DATA_ENRICHMENT_ENDPOINT_VOLUME_NAME}
    )

    def __init__(
        self,
        secrets: SecretProvisioner,
        resolver: OwnerChainResolver,
        cluster_id: str,
        operator_version: str,
    ):
        self.secrets = secrets
        self.resolver = resolver
        self.cluster_id = cluster_id
        self.operator_version = operator_version

    def enabled(self, pod: dict[str, Any]) -> bool:
        return get_field_bool(annotations(pod), ANNOTATION_DATA_ENRICHMENT_INJECT, True)

    def pod_injected(self, pod: dict[str, Any]) -> bool:
        return get_field_bool(
            annotations(pod), ANNOTATION_DATA_ENRICHMENT_INJECTED, False
        )

    def container_injected(self, container: dict[str, Any]) -> bool:
        return has_volume_mount(container, DATA_ENRICHMENT_VOLUME_NAME)

    async def mutate(self, ctx: MutationContext) -> None:
        logger.info(f"Injecting data enrichment into pod in namespace {ctx.namespace}")
        await self.secrets.ensure_init_secret(ctx.config, ctx.namespace)
        await self.secrets.ensure_endpoint_secret(ctx.config, ctx.namespace)

        workload = await self._resolve_workload(ctx.pod, ctx.namespace)

        append_volumes(
            ctx.pod,
            {"name": DATA_ENRICHMENT_VOLUME_NAME, "emptyDir": {}},
            {
                "name": DATA_ENRICHMENT_ENDPOINT_VOLUME_NAME,
                "secret": {"secretName": ENDPOINT_SECRET_NAME},
            },
        )
        append_env(
            ctx.init_container,
            {"name": WORKLOAD_KIND_ENV, "value": workload.kind},
            {"name": WORKLOAD_NAME_ENV, "value": workload.name},
            {"name": DATA_ENRICHMENT_INJECTED_ENV, "value": "true"},
        )
        append_volume_mounts(
            ctx.init_container,
            {"name": DATA_ENRICHMENT_VOLUME_NAME, "mountPath": ENRICHMENT_DIR_MOUNT},
        )

        for index, container in enumerate(containers(ctx.pod)):
            add_container_info_env(ctx.init_container, index, container)
            self._add_enrichment_to_container(container, ctx.config)

        set_annotation(ctx.pod, ANNOTATION_DATA_ENRICHMENT_INJECTED, "true")

    def reinvoke(self, ctx: ReinvocationContext) -> None:
        container = ctx.container
        if ctx.init_container is not None:
            add_container_info_env(ctx.init_container, ctx.container_index, container)
        self._add_enrichment_to_container(container, ctx.config)

    async def _resolve_workload(
        self, pod: dict[str, Any], namespace: str
    ) -> WorkloadInfo:
        try:
            return await self.resolver.resolve_pod(pod, namespace)
        except OwnerResolutionError as e:
            logger.warning(
                f"Could not resolve workload of pod in namespace {namespace}, "
                f"using {e.partial.kind or 'pod'} {e.partial.name}: {e.message}"
            )
            return e.partial

    def _add_enrichment_to_container(
        self, container: dict[str, Any], config: MonitoringConfig
    ) -> None:
        append_volume_mounts(
            container,
            {"name": DATA_ENRICHMENT_VOLUME_NAME, "mountPath": ENRICHMENT_PATH},
            {
                "name": DATA_ENRICHMENT_ENDPOINT_VOLUME_NAME,
                "mountPath": ENRICHMENT_ENDPOINT_PATH,
            },
        )
        add_deployment_metadata_if_missing(
            container, config, self.operator_version, self.cluster_id
        )
