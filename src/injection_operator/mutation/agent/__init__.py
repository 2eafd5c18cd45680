"""Agent capability: preloads the monitoring agent into application containers."""

from .mutator import AgentPodMutator

__all__ = ["AgentPodMutator"]
