"""
Admission handler for pod creation requests.

The handler never denies a pod. Every failure while resolving configuration
or mutating the pod ends in an allowed response without a patch, carrying a
diagnostic message ("soft-fail"). Pod creation is never blocked by a fault of
the webhook itself.
"""

import asyncio
import json
import logging
import time
from collections.abc import Sequence
from typing import Any

from kubernetes.client.rest import ApiException
from opentelemetry.trace import SpanKind, Status, StatusCode
from pydantic import ValidationError

from injection_operator.constants import (
    ANNOTATION_INJECTED,
    EVENT_TYPE_NORMAL,
    EVENT_TYPE_WARNING,
    INJECT_EVENT,
    INSTANCE_LABEL_KEY,
    MISSING_CONFIG_EVENT,
    POD_KIND,
    UPDATE_POD_EVENT,
)
from injection_operator.errors import (
    ConfigLookupError,
    ConfigMissingError,
    DecodeError,
    InjectionError,
)
from injection_operator.models.admission import AdmissionRequest, AdmissionResponse
from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.mutation.base import PodMutator
from injection_operator.mutation.context import MutationContext
from injection_operator.mutation.patch import build_patch
from injection_operator.mutation.pipeline import MutationPipeline
from injection_operator.mutation.podspec import (
    add_init_container,
    add_injection_config_volume,
    build_install_init_container,
    get_base_pod_name,
    is_injected,
    set_annotation,
)
from injection_operator.mutation.registry import NameRegistry
from injection_operator.mutation.reinvocation import ReinvocationEngine
from injection_operator.observability.logging import AdmissionLogger
from injection_operator.observability.metrics import MetricsCollector
from injection_operator.observability.tracing import get_tracer
from injection_operator.utils.events import EventRecorder, monitoring_config_reference
from injection_operator.utils.kubernetes import CLUSTER_ERRORS, ClusterClient, error_reason

logger = logging.getLogger(__name__)
admission_logger = AdmissionLogger(__name__)

OUTCOME_INJECTED = "injected"
OUTCOME_REINVOKED = "reinvoked"
OUTCOME_SKIPPED = "skipped"
OUTCOME_SOFT_FAILED = "soft_failed"


def pod_display_name(request: AdmissionRequest, pod: dict[str, Any] | None) -> str:
    """Best available name of the admitted pod, generateName for unnamed pods."""
    metadata = (pod or {}).get("metadata") or {}
    return metadata.get("name") or metadata.get("generateName") or request.name


def soft_fail_message(pod_name: str, error: Exception) -> str:
    return f"Failed to inject into pod: {pod_name} because {error}"


class PodMutationHandler:
    """
    Turns one pod admission request into one admission response.

    Requests are independent: the handler keeps no per-request state, so a
    single instance serves concurrent requests.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        mutators: Sequence[PodMutator],
        recorder: EventRecorder,
        image: str,
        operator_namespace: str,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the admission handler.

        Args:
            cluster: Cluster collaborator
            mutators: Capability mutators in their fixed pipeline order
            recorder: Event recorder
            image: Image of the install init container
            operator_namespace: Namespace holding the MonitoringConfigs
            metrics: Metrics collector, or None to disable metrics

        Raises:
            NameCollisionError: If two mutators claim the same env var or volume
        """
        self.cluster = cluster
        self.recorder = recorder
        self.image = image
        self.operator_namespace = operator_namespace
        self.metrics = metrics
        self.registry = NameRegistry.for_mutators(mutators)
        self.pipeline = MutationPipeline(mutators)
        self.reinvocation = ReinvocationEngine(mutators)

    async def handle(
        self, request: AdmissionRequest, timeout: float | None = None
    ) -> AdmissionResponse:
        """
        Handle a pod admission request.

        Args:
            request: Admission request
            timeout: Deadline in seconds for the whole request, None for no deadline

        Returns:
            Allowed admission response, with a JSON patch when the pod was mutated
        """
        start_time = time.monotonic()
        pod = self._try_decode(request)
        pod_name = pod_display_name(request, pod)
        admission_logger.log_admission_start(request.uid, request.namespace, pod_name)

        tracer = get_tracer(__name__)
        with tracer.start_as_current_span(
            "pod_admission",
            kind=SpanKind.SERVER,
            attributes={
                "k8s.namespace": request.namespace or "unknown",
                "k8s.resource.name": pod_name or "unknown",
                "admission.uid": request.uid,
            },
        ) as span:
            try:
                async with asyncio.timeout(timeout):
                    response, outcome = await self._handle(request, pod)
            except InjectionError as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                return self._soft_fail(request, pod_name, e, start_time)
            except TimeoutError as e:
                span.set_status(Status(StatusCode.ERROR, "deadline exceeded"))
                error = InjectionError(
                    f"admission deadline of {timeout}s exceeded",
                    category="timeout",
                    cause=e,
                )
                return self._soft_fail(request, pod_name, error, start_time)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                return self._soft_fail(
                    request, pod_name, e, start_time, unexpected=True
                )

            span.set_attribute("admission.outcome", outcome)
            duration = time.monotonic() - start_time
            admission_logger.log_admission_success(
                request.namespace, pod_name, outcome, len(response.patch), duration
            )
            if self.metrics:
                self.metrics.record_admission(outcome, duration)
            return response

    async def _handle(
        self, request: AdmissionRequest, pod: dict[str, Any] | None
    ) -> tuple[AdmissionResponse, str]:
        if pod is None:
            pod = self._decode(request)

        namespace = request.namespace or (pod.get("metadata") or {}).get("namespace", "")
        config_name = await self._config_name(namespace)
        if not config_name:
            logger.debug(f"Namespace {namespace} is not assigned to a MonitoringConfig")
            return self._empty(request), OUTCOME_SKIPPED

        config = await self._read_config(namespace, config_name)
        if not config.needs_app_injection():
            logger.debug(f"MonitoringConfig {config.name} does not request injection")
            return self._empty(request), OUTCOME_SKIPPED

        if is_injected(pod):
            return await self._reinvoke(request, pod, namespace, config)

        return await self._inject(request, pod, namespace, config)

    async def _inject(
        self,
        request: AdmissionRequest,
        pod: dict[str, Any],
        namespace: str,
        config: MonitoringConfig,
    ) -> tuple[AdmissionResponse, str]:
        if not self.pipeline.enabled_mutators(pod):
            logger.info("All capabilities are disabled for the pod, skipping injection")
            return self._empty(request), OUTCOME_SKIPPED

        init_container = build_install_init_container(pod, self.image, config)
        add_injection_config_volume(pod)

        ctx = MutationContext(
            pod=pod, namespace=namespace, config=config, init_container=init_container
        )
        applied = await self.pipeline.run(ctx)

        add_init_container(pod, init_container)
        set_annotation(pod, ANNOTATION_INJECTED, "true")

        base_pod_name = get_base_pod_name(pod)
        logger.info(
            f"Injected {', '.join(applied)} into pod {base_pod_name} in namespace {namespace}",
            extra={"mutators": applied, "monitoring_config": config.name},
        )
        await self.recorder.event(
            self._pod_reference(pod, namespace),
            EVENT_TYPE_NORMAL,
            INJECT_EVENT,
            f"Injecting the necessary info into pod {base_pod_name} in namespace {namespace}",
        )
        return self._patched(request, pod), OUTCOME_INJECTED

    async def _reinvoke(
        self,
        request: AdmissionRequest,
        pod: dict[str, Any],
        namespace: str,
        config: MonitoringConfig,
    ) -> tuple[AdmissionResponse, str]:
        if not config.feature_enable_webhook_reinvocation_policy():
            logger.debug("Pod is already injected and reinvocation is disabled")
            return self._empty(request), OUTCOME_SKIPPED

        repaired = self.reinvocation.repair(pod, config)
        if repaired == 0:
            logger.debug("Pod is already injected, no container needs repair")
            return self._empty(request), OUTCOME_SKIPPED

        if self.metrics:
            self.metrics.record_repaired_containers(repaired)

        generate_name = (pod.get("metadata") or {}).get("generateName", "")
        await self.recorder.event(
            self._pod_reference(pod, namespace),
            EVENT_TYPE_NORMAL,
            UPDATE_POD_EVENT,
            f"Updating pod {generate_name} in namespace {namespace} with missing containers",
        )
        return self._patched(request, pod), OUTCOME_REINVOKED

    async def _config_name(self, namespace: str) -> str:
        try:
            ns = await self.cluster.read_namespace(namespace)
        except CLUSTER_ERRORS as e:
            raise ConfigLookupError(
                f"failed to query the namespace {namespace}: {error_reason(e)}", cause=e
            ) from e

        labels = (ns.metadata.labels if ns.metadata else None) or {}
        return labels.get(INSTANCE_LABEL_KEY, "")

    async def _read_config(self, namespace: str, config_name: str) -> MonitoringConfig:
        try:
            resource = await self.cluster.read_monitoring_config(
                config_name, self.operator_namespace
            )
        except CLUSTER_ERRORS as e:
            if isinstance(e, ApiException) and e.status == 404:
                error = ConfigMissingError(namespace, config_name)
                await self.recorder.event(
                    monitoring_config_reference(config_name, self.operator_namespace),
                    EVENT_TYPE_WARNING,
                    MISSING_CONFIG_EVENT,
                    error.message,
                )
                raise error from e
            raise ConfigLookupError(
                f"failed to query MonitoringConfig {config_name}: {error_reason(e)}", cause=e
            ) from e

        try:
            return MonitoringConfig.from_resource(resource)
        except ValidationError as e:
            raise ConfigLookupError(
                f"MonitoringConfig {config_name} is invalid: {e.error_count()} errors",
                cause=e,
            ) from e

    @staticmethod
    def _try_decode(request: AdmissionRequest) -> dict[str, Any] | None:
        try:
            return PodMutationHandler._decode(request)
        except DecodeError:
            return None

    @staticmethod
    def _decode(request: AdmissionRequest) -> dict[str, Any]:
        try:
            pod = json.loads(request.object_raw)
        except ValueError as e:
            raise DecodeError(f"cannot decode pod: {e}", cause=e) from e

        if not isinstance(pod, dict):
            raise DecodeError("cannot decode pod: admitted object is not a JSON object")
        if pod.get("kind", POD_KIND) != POD_KIND:
            raise DecodeError(f"cannot decode pod: unexpected kind {pod.get('kind')}")
        return pod

    @staticmethod
    def _pod_reference(pod: dict[str, Any], namespace: str) -> dict[str, str]:
        metadata = pod.get("metadata") or {}
        return {
            "apiVersion": "v1",
            "kind": POD_KIND,
            "name": metadata.get("name") or metadata.get("generateName") or "",
            "namespace": namespace,
        }

    @staticmethod
    def _empty(request: AdmissionRequest) -> AdmissionResponse:
        return AdmissionResponse(uid=request.uid)

    @staticmethod
    def _patched(request: AdmissionRequest, pod: dict[str, Any]) -> AdmissionResponse:
        return AdmissionResponse(
            uid=request.uid, patch=build_patch(request.object_raw, pod)
        )

    def _soft_fail(
        self,
        request: AdmissionRequest,
        pod_name: str,
        error: Exception,
        start_time: float,
        unexpected: bool = False,
    ) -> AdmissionResponse:
        duration = time.monotonic() - start_time
        admission_logger.log_soft_failure(
            request.namespace, pod_name, error, duration, unexpected=unexpected
        )
        if self.metrics:
            self.metrics.record_soft_failure(error)
            self.metrics.record_admission(OUTCOME_SOFT_FAILED, duration)
        return AdmissionResponse(
            uid=request.uid, message=soft_fail_message(pod_name, error)
        )
