"""
OpenTelemetry distributed tracing for the injection operator.

This module provides:
- Tracer provider setup with OTLP export
- Manual span creation for admission requests
- Kopf handler decorator for automatic span creation

Usage:
    from injection_operator.observability.tracing import (
        setup_tracing,
        get_tracer,
        traced_handler,
    )

    # Initialize at startup
    setup_tracing(enabled=True)

    # Get tracer for manual spans
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("pod_admission"):
        ...
"""

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import ParamSpec, TypeVar

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.trace import SpanKind, Status, StatusCode, Tracer

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None
_initialized: bool = False

P = ParamSpec("P")
R = TypeVar("R")


def setup_tracing(
    enabled: bool = False,
    endpoint: str = "http://localhost:4317",
    service_name: str = "injection-operator",
    sample_rate: float = 1.0,
    insecure: bool = True,
) -> TracerProvider | None:
    """
    Initialize OpenTelemetry tracing for the operator.

    Args:
        enabled: Enable tracing (if False, returns None and does nothing)
        endpoint: OTLP collector endpoint (gRPC)
        service_name: Service name for traces
        sample_rate: Sampling rate (0.0-1.0, 1.0 = 100% of traces)
        insecure: Use insecure connection (no TLS)

    Returns:
        TracerProvider if enabled, None otherwise
    """
    global _tracer_provider, _initialized

    if _initialized:
        logger.debug("Tracing already initialized, skipping")
        return _tracer_provider

    if not enabled:
        logger.info("OpenTelemetry tracing is disabled")
        _initialized = True
        return None

    logger.info(
        f"Initializing OpenTelemetry tracing: endpoint={endpoint}, "
        f"service={service_name}, sample_rate={sample_rate}"
    )

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "injection-operator",
            "deployment.environment": "kubernetes",
        }
    )
    sampler = ParentBased(root=TraceIdRatioBased(sample_rate))
    _tracer_provider = TracerProvider(resource=resource, sampler=sampler)
    _tracer_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=insecure))
    )
    trace.set_tracer_provider(_tracer_provider)

    _initialized = True
    logger.info("OpenTelemetry tracing initialized successfully")
    return _tracer_provider


def shutdown_tracing() -> None:
    """Shutdown tracing and flush any pending spans."""
    global _tracer_provider, _initialized

    if _tracer_provider is not None:
        logger.info("Shutting down OpenTelemetry tracing")
        _tracer_provider.shutdown()
        _tracer_provider = None

    _initialized = False


def get_tracer(name: str = __name__) -> Tracer:
    """
    Get a tracer instance for creating spans.

    Returns a no-op tracer if tracing is disabled.
    """
    return trace.get_tracer(name)


def traced_handler(
    operation_name: str,
    span_kind: SpanKind = SpanKind.SERVER,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for Kopf handlers to automatically create spans.

    Adds the Kubernetes namespace and name of the handled resource as span
    attributes, records exceptions and sets the span status.

    Args:
        operation_name: Name of the operation (e.g., "validate_monitoring_config")
        span_kind: Kind of span

    Example:
        @kopf.on.validate("injector.monitoring.io", "v1", "monitoringconfigs")
        @traced_handler("validate_monitoring_config")
        async def validate_monitoring_config(spec, name, namespace, **kwargs):
            ...
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"traced_handler requires a coroutine function, got {func}")

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            tracer = get_tracer(func.__module__ or __name__)
            attributes = {
                "k8s.namespace": kwargs.get("namespace") or "unknown",
                "k8s.resource.name": kwargs.get("name") or "unknown",
                "kopf.handler": getattr(func, "__name__", "unknown"),
            }

            with tracer.start_as_current_span(
                operation_name, kind=span_kind, attributes=attributes
            ) as span:
                try:
                    result = await func(*args, **kwargs)
                    span.set_status(Status(StatusCode.OK))
                    return result
                except Exception as e:
                    span.set_status(Status(StatusCode.ERROR, str(e)))
                    span.record_exception(e)
                    raise

        return wrapper

    return decorator

