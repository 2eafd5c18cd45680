"""
The capability mutator abstraction.

A capability mutator encapsulates one optional injection concern. Mutators are
plain objects satisfying the ``PodMutator`` protocol; the pipeline and the
reinvocation engine only ever call the protocol methods.
"""

from typing import Any, Protocol, runtime_checkable

from injection_operator.mutation.context import MutationContext, ReinvocationContext


@runtime_checkable
class PodMutator(Protocol):
    """
    One pluggable injection capability.

    ``enabled``, ``pod_injected`` and ``container_injected`` must be pure
    functions of the object's current fields. Configuration captured at
    construction (image, cluster id, collaborators) is the only state.
    """

    name: str
    owned_env_vars: frozenset[str]
    owned_volumes: frozenset[str]

    def enabled(self, pod: dict[str, Any]) -> bool:
        """Whether the pod opts into this capability."""
        ...

    def pod_injected(self, pod: dict[str, Any]) -> bool:
        """Whether a previous pass already applied this capability to the pod."""
        ...

    def container_injected(self, container: dict[str, Any]) -> bool:
        """Whether this capability was applied to the given container."""
        ...

    async def mutate(self, ctx: MutationContext) -> None:
        """Apply the capability to every container of a fresh pod."""
        ...

    def reinvoke(self, ctx: ReinvocationContext) -> None:
        """Apply the capability to the single container named by the context."""
        ...
