"""
Owner chain resolution.

Walks a pod's controller owner references up to the top-level workload
(Pod -> ReplicaSet -> Deployment, Pod -> Job -> CronJob, ...). Only
references to well-known workload kinds are followed; anything else ends the
walk at the current object.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from injection_operator.constants import (
    DEFAULT_OWNER_CHAIN_MAX_DEPTH,
    POD_KIND,
    WELL_KNOWN_WORKLOADS,
)
from injection_operator.errors import OwnerResolutionError
from injection_operator.models.workload import WorkloadInfo
from injection_operator.utils.kubernetes import CLUSTER_ERRORS, ClusterClient, error_reason

logger = logging.getLogger(__name__)


@dataclass
class OwnerNode:
    """An object visited while walking the owner chain."""

    name: str
    kind: str
    api_version: str
    namespace: str
    owner_references: list[dict[str, Any]] = field(default_factory=list)

    def workload(self) -> WorkloadInfo:
        kind = "" if self.kind == POD_KIND else self.kind
        return WorkloadInfo(name=self.name, kind=kind)


def is_well_known_workload(owner_reference: dict[str, Any]) -> bool:
    key = (owner_reference.get("kind", ""), owner_reference.get("apiVersion", ""))
    return key in WELL_KNOWN_WORKLOADS


def find_controller_owner(node: OwnerNode) -> dict[str, Any] | None:
    for owner in node.owner_references:
        if owner.get("controller") is True and is_well_known_workload(owner):
            return owner
    return None


class OwnerChainResolver:
    """
    Resolves the top-level workload owning a pod.

    The walk issues one metadata read per followed owner reference. It is
    bounded by ``max_depth`` and by a visited set, so a cyclic or very deep
    reference graph ends with an ``OwnerResolutionError`` instead of
    unbounded recursion.
    """

    def __init__(
        self, cluster: ClusterClient, max_depth: int = DEFAULT_OWNER_CHAIN_MAX_DEPTH
    ):
        self.cluster = cluster
        self.max_depth = max_depth

    async def resolve_pod(self, pod: dict[str, Any], namespace: str) -> WorkloadInfo:
        """
        Resolve the workload of a pod from an admission request.

        Args:
            pod: Decoded pod
            namespace: Namespace of the request (pod metadata may not carry it yet)

        Returns:
            Name and kind of the top-level workload

        Raises:
            OwnerResolutionError: If the walk can't complete, with the
                best-known workload attached
        """
        metadata = pod.get("metadata") or {}
        node = OwnerNode(
            name=metadata.get("name") or metadata.get("generateName") or "",
            kind=pod.get("kind") or POD_KIND,
            api_version=pod.get("apiVersion") or "v1",
            namespace=namespace,
            owner_references=metadata.get("ownerReferences") or [],
        )
        return await self.resolve(node)

    async def resolve(self, node: OwnerNode) -> WorkloadInfo:
        visited: set[tuple[str, str, str]] = set()
        return await self._resolve(node, depth=0, visited=visited)

    async def _resolve(
        self, node: OwnerNode, depth: int, visited: set[tuple[str, str, str]]
    ) -> WorkloadInfo:
        if not node.owner_references:
            return node.workload()

        owner = find_controller_owner(node)
        if owner is None:
            return node.workload()

        key = (owner.get("apiVersion", ""), owner.get("kind", ""), owner.get("name", ""))
        if key in visited:
            raise OwnerResolutionError(
                f"cycle in owner references at {key[1]} {key[2]} in namespace {node.namespace}",
                partial=node.workload(),
            )
        if depth >= self.max_depth:
            raise OwnerResolutionError(
                f"owner chain of {node.kind} {node.name} exceeds {self.max_depth} levels",
                partial=node.workload(),
            )
        visited.add(key)

        owner_node = await self._fetch_owner(node, owner)
        return await self._resolve(owner_node, depth + 1, visited)

    async def _fetch_owner(self, node: OwnerNode, owner: dict[str, Any]) -> OwnerNode:
        api_version = owner["apiVersion"]
        kind = owner["kind"]
        name = owner["name"]
        plural = WELL_KNOWN_WORKLOADS[(kind, api_version)]

        try:
            partial = await self.cluster.read_object_metadata(
                api_version, plural, name, node.namespace
            )
        except CLUSTER_ERRORS as e:
            reason = error_reason(e)
            logger.error(
                f"Failed to query the object {api_version}/{kind} {name} "
                f"in namespace {node.namespace}: {reason}"
            )
            raise OwnerResolutionError(
                f"failed to query {kind} {name} in namespace {node.namespace}: {reason}",
                partial=node.workload(),
                cause=e,
            ) from e

        metadata = (partial or {}).get("metadata") or {}
        return OwnerNode(
            name=metadata.get("name") or name,
            kind=kind,
            api_version=api_version,
            namespace=node.namespace,
            owner_references=metadata.get("ownerReferences") or [],
        )
