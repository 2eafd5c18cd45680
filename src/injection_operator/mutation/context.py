"""Per-request contexts handed to capability mutators."""

from dataclasses import dataclass
from typing import Any

from injection_operator.models.monitoring_config import MonitoringConfig


@dataclass
class MutationContext:
    """
    Everything a mutator needs for a fresh injection.

    The pod and the init container are mutated in place. A mutator must not
    keep a reference to the context once its call returns.
    """

    pod: dict[str, Any]
    namespace: str
    config: MonitoringConfig
    init_container: dict[str, Any]


@dataclass
class ReinvocationContext:
    """Context for repairing a single application container of an injected pod."""

    pod: dict[str, Any]
    config: MonitoringConfig
    init_container: dict[str, Any] | None
    container_index: int

    @property
    def container(self) -> dict[str, Any]:
        return self.pod["spec"]["containers"][self.container_index]
