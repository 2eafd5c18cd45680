"""Centralized operator settings using pydantic-settings.

This module provides a single source of truth for all operator configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from injection_operator.constants import DEFAULT_OWNER_CHAIN_MAX_DEPTH


class Settings(BaseSettings):
    """Operator configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Operator identification
    operator_namespace: str = Field(
        default="injection-system",
        description="Namespace where the operator and its MonitoringConfigs live",
        validation_alias="OPERATOR_NAMESPACE",
    )
    pod_name: str = Field(
        default="",
        description="Name of the operator pod (from downward API)",
        validation_alias="POD_NAME",
    )
    webhook_image: str = Field(
        default="",
        description="Image of the install init container (default: own pod's image)",
        validation_alias="WEBHOOK_IMAGE",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )
    log_health_probes: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_PROBES",
        description="Log health probe and metrics scrape requests",
    )
    webhook_log_level: str = Field(
        default="INFO",
        validation_alias="WEBHOOK_LOG_LEVEL",
        description="Log level for the admission webhook loggers",
    )

    # Pod mutation webhook
    injection_webhook_host: str = Field(
        default="0.0.0.0",
        validation_alias="INJECTION_WEBHOOK_HOST",
        description="Host address to bind the pod mutation webhook",
    )
    injection_webhook_port: int = Field(
        default=8443,
        validation_alias="INJECTION_WEBHOOK_PORT",
        description="Port of the pod mutation webhook",
    )
    webhook_cert_dir: str = Field(
        default="/tmp/k8s-webhook-server/serving-certs",
        validation_alias="WEBHOOK_CERT_DIR",
        description="Directory holding tls.crt and tls.key for the webhook servers",
    )
    kubernetes_request_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        validation_alias="KUBERNETES_REQUEST_TIMEOUT_SECONDS",
        description="Timeout of each Kubernetes API call made while admitting a pod",
    )
    owner_chain_max_depth: int = Field(
        default=DEFAULT_OWNER_CHAIN_MAX_DEPTH,
        ge=1,
        validation_alias="OWNER_CHAIN_MAX_DEPTH",
        description="Maximum number of owner references followed per pod",
    )

    # Validating admission webhook (served by kopf)
    enable_webhooks: bool = Field(
        default=True,
        validation_alias="ENABLE_WEBHOOKS",
        description="Enable the MonitoringConfig validating webhook",
    )
    webhook_port: int = Field(
        default=9443,
        validation_alias="WEBHOOK_PORT",
        description="Port for the validating admission webhook server",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )
    tracing_enabled: bool = Field(
        default=False,
        validation_alias="TRACING_ENABLED",
        description="Enable OpenTelemetry tracing",
    )
    tracing_endpoint: str = Field(
        default="http://localhost:4317",
        validation_alias="TRACING_ENDPOINT",
        description="OTLP collector endpoint (gRPC)",
    )
    tracing_sample_rate: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        validation_alias="TRACING_SAMPLE_RATE",
        description="Fraction of admission requests traced",
    )
    tracing_insecure: bool = Field(
        default=True,
        validation_alias="TRACING_INSECURE",
        description="Use an insecure connection to the OTLP collector",
    )


# Global settings instance - initialized once at module import
settings = Settings()
