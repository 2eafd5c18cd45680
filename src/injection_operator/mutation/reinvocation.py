"""
Reinvocation engine for already-injected pods.

With the reinvocation policy enabled the API server may call the webhook
again for the same pod, typically after another webhook added containers.
The engine only fills the gaps: a mutator is reinvoked for a container when
the pod as a whole carries the mutator's injection but the container does
not. A second run on the result finds nothing to do.
"""

import logging
from collections.abc import Sequence
from typing import Any

from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.mutation.base import PodMutator
from injection_operator.mutation.context import ReinvocationContext
from injection_operator.mutation.podspec import containers, find_install_init_container

logger = logging.getLogger(__name__)


class ReinvocationEngine:
    """Repairs containers that miss a capability applied to their pod."""

    def __init__(self, mutators: Sequence[PodMutator]):
        self.mutators = tuple(mutators)

    def repair(self, pod: dict[str, Any], config: MonitoringConfig) -> int:
        """
        Reinvoke mutators for every container missing their injection.

        Args:
            pod: Already-injected pod, mutated in place
            config: MonitoringConfig assigned to the pod's namespace

        Returns:
            Number of containers that were modified
        """
        enabled = [mutator for mutator in self.mutators if mutator.enabled(pod)]
        init_container: dict[str, Any] | None = None
        init_container_looked_up = False
        repaired = 0

        for index, container in enumerate(containers(pod)):
            modified = False
            for mutator in enabled:
                if not mutator.pod_injected(pod) or mutator.container_injected(container):
                    continue

                if not init_container_looked_up:
                    init_container = find_install_init_container(pod)
                    init_container_looked_up = True
                    if init_container is None:
                        logger.warning(
                            "Install init container not found, repairing containers "
                            "without init container bookkeeping"
                        )

                logger.info(
                    f"Instrumenting missing container {container.get('name')} "
                    f"with {mutator.name}"
                )
                mutator.reinvoke(
                    ReinvocationContext(
                        pod=pod,
                        config=config,
                        init_container=init_container,
                        container_index=index,
                    )
                )
                modified = True

            if modified:
                repaired += 1

        return repaired
