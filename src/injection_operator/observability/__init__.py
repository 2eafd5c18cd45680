"""
Observability utilities for the injection operator.

This module provides metrics, tracing and structured logging capabilities
for production monitoring and troubleshooting.
"""

from .logging import AdmissionLogger, setup_structured_logging
from .metrics import MetricsCollector, MetricsServer, get_metrics_registry

__all__ = [
    "AdmissionLogger",
    "MetricsCollector",
    "MetricsServer",
    "get_metrics_registry",
    "setup_structured_logging",
]
