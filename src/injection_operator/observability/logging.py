"""
Structured logging utilities for the injection operator.

This module provides correlation ID tracking, structured log formatting,
and admission-request logging for production troubleshooting.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across async operations
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

# Paths that should be filtered from access logs (health probes)
HEALTH_PROBE_PATHS = frozenset({"/healthz", "/livez", "/metrics"})

STRUCTURED_FIELDS = (
    "namespace",
    "pod_name",
    "operation",
    "duration",
    "error_type",
    "mutators",
    "patch_operations",
    "repaired_containers",
    "monitoring_config",
)


class HealthProbeFilter(logging.Filter):
    """
    Logging filter that suppresses health probe and metrics endpoint logs.

    These endpoints are hit frequently by Kubernetes probes and monitoring
    systems, generating excessive noise in logs during debugging.
    """

    def __init__(self, suppress_health_logs: bool = True):
        super().__init__()
        self.suppress_health_logs = suppress_health_logs

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.suppress_health_logs:
            return True

        message = record.getMessage()
        return all(path not in message for path in HEALTH_PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        current_correlation_id = correlation_id.get()
        if not current_correlation_id:
            current_correlation_id = generate_correlation_id()
            correlation_id.set(current_correlation_id)

        record.correlation_id = current_correlation_id
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as structured JSON for better parsing and analysis
    in production monitoring systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data)


def generate_correlation_id() -> str:
    """
    Generate a new correlation ID.

    Returns:
        Unique correlation ID string
    """
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    """
    Set the correlation ID for the current context.

    Admission requests use the first characters of the request uid, so log
    lines can be matched with API server audit entries.

    Args:
        corr_id: Correlation ID to set

    Returns:
        The correlation ID that was set
    """
    correlation_id.set(corr_id)
    return corr_id


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_probes: bool = False,
    webhook_log_level: str = "INFO",
) -> None:
    """
    Set up structured logging for the operator.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
        log_health_probes: Whether to log health probe requests (default: False)
        webhook_log_level: Log level for the admission webhook loggers
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    if not log_health_probes:
        handler.addFilter(HealthProbeFilter(suppress_health_logs=True))

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Third-party libraries
    logging.getLogger("kopf").setLevel(logging.WARNING)
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    # aiohttp access logs spam with probe requests
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.server").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.web").setLevel(logging.WARNING)

    webhook_level = getattr(logging, webhook_log_level.upper(), logging.INFO)
    logging.getLogger("injection_operator.mutation").setLevel(webhook_level)
    logging.getLogger("injection_operator.webhooks").setLevel(webhook_level)


class AdmissionLogger:
    """
    Logger for admission requests with structured logging support.

    Provides convenient methods for logging the lifecycle of a pod admission
    with correlation ID tracking and structured data.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_admission_start(self, uid: str, namespace: str, pod_name: str) -> str:
        """
        Log the start of an admission request.

        Args:
            uid: Admission request uid
            namespace: Namespace of the pod
            pod_name: Pod name, or generateName for not-yet-named pods

        Returns:
            The correlation ID used for this request
        """
        corr_id = set_correlation_id(uid[:8] if uid else generate_correlation_id())

        self.logger.debug(
            f"Received pod admission request {uid}",
            extra={
                "namespace": namespace,
                "pod_name": pod_name,
                "operation": "admission_start",
            },
        )

        return corr_id

    def log_admission_success(
        self,
        namespace: str,
        pod_name: str,
        outcome: str,
        patch_operations: int,
        duration: float,
    ) -> None:
        self.logger.info(
            f"Pod {pod_name} in namespace {namespace} admitted ({outcome})",
            extra={
                "namespace": namespace,
                "pod_name": pod_name,
                "operation": outcome,
                "patch_operations": patch_operations,
                "duration": duration,
            },
        )

    def log_soft_failure(
        self,
        namespace: str,
        pod_name: str,
        error: Exception,
        duration: float,
        unexpected: bool = False,
    ) -> None:
        """
        Log an admission that was allowed without mutation because of an error.

        Args:
            namespace: Namespace of the pod
            pod_name: Pod name, or generateName
            error: The error that stopped the mutation
            duration: Time spent on the request in seconds
            unexpected: Whether the error is outside the injection error hierarchy
        """
        self.logger.error(
            f"Failed to inject into pod {pod_name} in namespace {namespace}: {error}",
            extra={
                "namespace": namespace,
                "pod_name": pod_name,
                "operation": "soft_fail",
                "error_type": type(error).__name__,
                "duration": duration,
            },
            exc_info=unexpected,
        )
