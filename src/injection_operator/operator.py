#!/usr/bin/env python3
"""
Injection Operator - Main entry point for the Kopf-based injection operator.

The operator hosts:
- The pod mutation webhook (aiohttp, ``POST /inject``)
- The MonitoringConfig validating webhook (served by kopf)
- The Prometheus metrics endpoint

Usage:
    python -m injection_operator.operator
    # Or with kopf directly:
    kopf run -m injection_operator.operator --all-namespaces
"""

import logging
import sys

import kopf
from kubernetes.client.rest import ApiException

from injection_operator import __version__
from injection_operator.mutation.agent import AgentPodMutator
from injection_operator.mutation.enrichment import DataEnrichmentPodMutator
from injection_operator.mutation.handler import PodMutationHandler
from injection_operator.mutation.owner import OwnerChainResolver
from injection_operator.mutation.server import InjectionWebhookServer
from injection_operator.observability.logging import setup_structured_logging
from injection_operator.observability.metrics import MetricsCollector, MetricsServer
from injection_operator.observability.tracing import setup_tracing, shutdown_tracing
from injection_operator.settings import settings as operator_settings
from injection_operator.utils.events import EventRecorder
from injection_operator.utils.kubernetes import ClusterClient, get_kubernetes_client
from injection_operator.utils.secret_manager import SecretProvisioner

# Import webhook modules to register admission webhooks ONLY if webhooks are enabled
# Kopf fails when admission handlers are registered without an admission server.
if operator_settings.enable_webhooks:
    from injection_operator.webhooks import (  # noqa: F401
        monitoring_config as monitoring_config_webhook,
    )

KUBE_SYSTEM_NAMESPACE = "kube-system"


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
        log_health_probes=operator_settings.log_health_probes,
        webhook_log_level=operator_settings.webhook_log_level,
    )


async def resolve_webhook_image(cluster: ClusterClient) -> str:
    """
    Image used for the install init container.

    Defaults to the image of the operator's own pod, so the injected
    installer always matches the running operator version.
    """
    if operator_settings.webhook_image:
        return operator_settings.webhook_image

    if not operator_settings.pod_name:
        raise ValueError("POD_NAME or WEBHOOK_IMAGE must be set to resolve the webhook image")

    pod = await cluster.read_pod(
        operator_settings.pod_name, operator_settings.operator_namespace
    )
    return pod.spec.containers[0].image


async def resolve_cluster_id(cluster: ClusterClient) -> str:
    """The uid of the kube-system namespace identifies the cluster."""
    namespace = await cluster.read_namespace(KUBE_SYSTEM_NAMESPACE)
    return namespace.metadata.uid


def build_handler(
    cluster: ClusterClient,
    image: str,
    cluster_id: str,
    operator_namespace: str,
    owner_chain_max_depth: int,
    metrics: MetricsCollector | None = None,
) -> PodMutationHandler:
    """
    Wire the capability mutators into an admission handler.

    Mutators run in list order: the agent first, then data enrichment.
    """
    secrets = SecretProvisioner(cluster, operator_namespace, cluster_id)
    resolver = OwnerChainResolver(cluster, max_depth=owner_chain_max_depth)
    mutators = [
        AgentPodMutator(secrets, cluster_id, __version__),
        DataEnrichmentPodMutator(secrets, resolver, cluster_id, __version__),
    ]
    return PodMutationHandler(
        cluster=cluster,
        mutators=mutators,
        recorder=EventRecorder(cluster),
        image=image,
        operator_namespace=operator_namespace,
        metrics=metrics,
    )


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup configuration.

    Loads the Kubernetes configuration, resolves the init container image
    and the cluster id, then starts the pod mutation webhook and the metrics
    server.
    """
    logging.info(f"Starting Injection Operator {__version__}...")
    settings.watching.reconnect_backoff = 1.0
    settings.posting.enabled = False

    setup_tracing(
        enabled=operator_settings.tracing_enabled,
        endpoint=operator_settings.tracing_endpoint,
        sample_rate=operator_settings.tracing_sample_rate,
        insecure=operator_settings.tracing_insecure,
    )

    cluster = ClusterClient(
        get_kubernetes_client(),
        request_timeout=operator_settings.kubernetes_request_timeout_seconds,
    )

    try:
        image = await resolve_webhook_image(cluster)
        cluster_id = await resolve_cluster_id(cluster)
    except ApiException as e:
        logging.error(f"Failed to resolve webhook image or cluster id: {e.reason}")
        raise

    logging.info(f"Install init container image: {image}, cluster id: {cluster_id}")

    metrics_server = MetricsServer(
        port=operator_settings.metrics_port, host=operator_settings.metrics_host
    )
    try:
        await metrics_server.start()
        memo.metrics_server = metrics_server
    except Exception as e:
        logging.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logging.warning("Continuing without metrics server")

    handler = build_handler(
        cluster=cluster,
        image=image,
        cluster_id=cluster_id,
        operator_namespace=operator_settings.operator_namespace,
        owner_chain_max_depth=operator_settings.owner_chain_max_depth,
        metrics=MetricsCollector(),
    )
    webhook_server = InjectionWebhookServer(
        handler,
        port=operator_settings.injection_webhook_port,
        host=operator_settings.injection_webhook_host,
        cert_dir=operator_settings.webhook_cert_dir,
    )
    await webhook_server.start()
    memo.webhook_server = webhook_server


@kopf.on.cleanup()
async def cleanup_handler(memo: kopf.Memo, **_) -> None:
    """Stop the servers started at startup and flush traces."""
    logging.info("Shutting down Injection Operator...")

    webhook_server = memo.get("webhook_server")
    if webhook_server:
        await webhook_server.stop()

    metrics_server = memo.get("metrics_server")
    if metrics_server:
        await metrics_server.stop()

    shutdown_tracing()


def main() -> None:
    """
    Main entry point for the operator.

    This function:
    1. Configures logging
    2. Configures the validating webhook server (must be before kopf.run())
    3. Runs the kopf operator
    """
    configure_logging()

    settings_obj = kopf.OperatorSettings()
    if operator_settings.enable_webhooks:
        cert_dir = operator_settings.webhook_cert_dir
        settings_obj.admission.server = kopf.WebhookServer(
            port=operator_settings.webhook_port,
            host="0.0.0.0",
            certfile=f"{cert_dir}/tls.crt",
            pkeyfile=f"{cert_dir}/tls.key",
        )
        # Webhook configurations are managed by the deployment manifests
        settings_obj.admission.managed = None
        logging.info(
            f"Validating webhook ENABLED on port {operator_settings.webhook_port} "
            f"using certificates from {cert_dir}"
        )
    else:
        settings_obj.admission.server = None
        settings_obj.admission.managed = None
        logging.info("Validating webhook DISABLED")

    try:
        kopf.run(
            clusterwide=True,
            liveness_endpoint="http://0.0.0.0:8080/healthz",
            settings=settings_obj,
        )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
