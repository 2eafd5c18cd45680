"""Data-enrichment capability: workload metadata and ingest endpoint for containers."""

from .mutator import DataEnrichmentPodMutator

__all__ = ["DataEnrichmentPodMutator"]
