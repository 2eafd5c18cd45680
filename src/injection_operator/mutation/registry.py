"""
Ownership registry for names written into pods.

Mutators append env vars and volumes to a shared pod, so two of them writing
the same name would silently produce duplicates. Every name has exactly one
owner; the registry is filled when the handler is constructed and refuses a
second claim.
"""

import logging
from collections.abc import Iterable, Sequence

from injection_operator.constants import (
    CONTAINER_COUNT_ENV,
    DEPLOYMENT_METADATA_ENV,
    FAILURE_POLICY_ENV,
    INJECTION_CONFIG_VOLUME_NAME,
    K8S_BASE_POD_NAME_ENV,
    K8S_NAMESPACE_ENV,
    K8S_NODE_NAME_ENV,
    K8S_POD_NAME_ENV,
    K8S_POD_UID_ENV,
)
from injection_operator.errors import NameCollisionError
from injection_operator.mutation.base import PodMutator

logger = logging.getLogger(__name__)

CORE_OWNER = "pipeline"

# Names written by the pipeline itself. CONTAINER_<n>_NAME/IMAGE are owned by
# the core as a pattern and added through podspec.add_container_info_env.
CORE_ENV_VARS = frozenset(
    {
        CONTAINER_COUNT_ENV,
        FAILURE_POLICY_ENV,
        K8S_POD_NAME_ENV,
        K8S_POD_UID_ENV,
        K8S_BASE_POD_NAME_ENV,
        K8S_NAMESPACE_ENV,
        K8S_NODE_NAME_ENV,
        DEPLOYMENT_METADATA_ENV,
    }
)
CORE_VOLUMES = frozenset({INJECTION_CONFIG_VOLUME_NAME})


class NameRegistry:
    """Maps env var and volume names to the component that owns them."""

    def __init__(self) -> None:
        self._owners: dict[tuple[str, str], str] = {}

    def claim(self, kind: str, names: Iterable[str], owner: str) -> None:
        for name in names:
            if kind == "env" and owner != CORE_OWNER and name.startswith("CONTAINER_"):
                raise NameCollisionError(kind, name, CORE_OWNER, owner)
            current = self.owner_of(kind, name)
            if current is not None and current != owner:
                raise NameCollisionError(kind, name, current, owner)
            self._owners[(kind, name)] = owner

    def owner_of(self, kind: str, name: str) -> str | None:
        return self._owners.get((kind, name))

    @classmethod
    def for_mutators(cls, mutators: Sequence[PodMutator]) -> "NameRegistry":
        """
        Build the registry for the core names plus every mutator's names.

        Raises:
            NameCollisionError: If two owners claim the same name
        """
        registry = cls()
        registry.claim("env", CORE_ENV_VARS, CORE_OWNER)
        registry.claim("volume", CORE_VOLUMES, CORE_OWNER)
        for mutator in mutators:
            registry.claim("env", mutator.owned_env_vars, mutator.name)
            registry.claim("volume", mutator.owned_volumes, mutator.name)
        logger.debug(
            f"Name registry built for mutators: {[m.name for m in mutators]}"
        )
        return registry
