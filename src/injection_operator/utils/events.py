"""
Kubernetes Event emission for the injection webhook.

Events are side effects of admission handling; a failure to post one is
logged and never changes the admission response.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from injection_operator.constants import (
    EVENT_SOURCE_COMPONENT,
    MONITORING_CONFIG_GROUP,
    MONITORING_CONFIG_KIND,
    MONITORING_CONFIG_VERSION,
)
from injection_operator.utils.kubernetes import CLUSTER_ERRORS, ClusterClient, error_reason

logger = logging.getLogger(__name__)


def monitoring_config_reference(name: str, namespace: str) -> dict[str, str]:
    """involvedObject reference pointing at a MonitoringConfig."""
    return {
        "apiVersion": f"{MONITORING_CONFIG_GROUP}/{MONITORING_CONFIG_VERSION}",
        "kind": MONITORING_CONFIG_KIND,
        "name": name,
        "namespace": namespace,
    }


class EventRecorder:
    """Posts core/v1 Events about objects involved in an injection."""

    def __init__(self, cluster: ClusterClient, component: str = EVENT_SOURCE_COMPONENT):
        self.cluster = cluster
        self.component = component

    def build_event(
        self,
        involved_object: dict[str, Any],
        event_type: str,
        reason: str,
        message: str,
    ) -> dict[str, Any]:
        now = datetime.now(UTC).isoformat()
        # Pods are admitted before they are named, generateName ends with '-'
        prefix = involved_object["name"].rstrip("-") or self.component
        return {
            "metadata": {
                "name": f"{prefix}.{uuid.uuid4().hex[:16]}",
                "namespace": involved_object["namespace"],
            },
            "type": event_type,
            "reason": reason,
            "message": message,
            "involvedObject": involved_object,
            "source": {"component": self.component},
            "firstTimestamp": now,
            "lastTimestamp": now,
            "count": 1,
        }

    async def event(
        self,
        involved_object: dict[str, Any],
        event_type: str,
        reason: str,
        message: str,
    ) -> None:
        body = self.build_event(involved_object, event_type, reason, message)
        try:
            await self.cluster.create_event(involved_object["namespace"], body)
        except CLUSTER_ERRORS as e:
            logger.warning(
                f"Failed to post {event_type} event {reason}: {error_reason(e)}"
            )
