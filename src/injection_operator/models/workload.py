"""Workload identity resolved from a pod's owner references."""

from dataclasses import dataclass


@dataclass(frozen=True)
class WorkloadInfo:
    """Name and kind of the top-level workload owning a pod.

    The kind is empty for bare pods without a known controller.
    """

    name: str
    kind: str
