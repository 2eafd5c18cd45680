"""
Mutation pipeline for first-time injection.

The pipeline invokes the registered capability mutators in registration
order. That order is a fixed contract: a later mutator can see what an
earlier one already wrote into the shared pod (for instance the data
enrichment mutator only adds deployment metadata when the agent mutator has
not). Reordering the mutators changes which one writes shared entries.
"""

import logging
from collections.abc import Sequence
from typing import Any

from injection_operator.mutation.base import PodMutator
from injection_operator.mutation.context import MutationContext

logger = logging.getLogger(__name__)


class MutationPipeline:
    """Ordered collection of capability mutators."""

    def __init__(self, mutators: Sequence[PodMutator]):
        self.mutators = tuple(mutators)

    def enabled_mutators(self, pod: dict[str, Any]) -> list[PodMutator]:
        return [mutator for mutator in self.mutators if mutator.enabled(pod)]

    async def run(self, ctx: MutationContext) -> list[str]:
        """
        Apply every enabled mutator to the pod in the context.

        Args:
            ctx: Mutation context shared by all mutators

        Returns:
            Names of the mutators that were applied

        Raises:
            InjectionError: If a mutator fails; the remaining mutators are not run
        """
        applied = []
        for mutator in self.mutators:
            if not mutator.enabled(ctx.pod):
                logger.debug(f"Mutator {mutator.name} disabled for pod")
                continue

            logger.debug(f"Running mutator {mutator.name}")
            await mutator.mutate(ctx)
            applied.append(mutator.name)

        return applied
