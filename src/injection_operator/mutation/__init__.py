"""
Pod mutation webhook.

The admission handler decodes pod creation requests, resolves the
MonitoringConfig assigned to the pod's namespace and either injects the
enabled capabilities into a fresh pod or repairs containers of an already
injected one.
"""

from .base import PodMutator
from .handler import PodMutationHandler
from .pipeline import MutationPipeline
from .reinvocation import ReinvocationEngine
from .server import InjectionWebhookServer

__all__ = [
    "PodMutator",
    "PodMutationHandler",
    "MutationPipeline",
    "ReinvocationEngine",
    "InjectionWebhookServer",
]
