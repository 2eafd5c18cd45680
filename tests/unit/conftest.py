"""Shared fixtures for unit tests: pods, MonitoringConfigs and a mocked cluster."""

import copy
from unittest.mock import AsyncMock, MagicMock

import pytest
from kubernetes.client.rest import ApiException

from injection_operator.constants import INSTANCE_LABEL_KEY
from injection_operator.models.monitoring_config import MonitoringConfig
from injection_operator.utils.kubernetes import ClusterClient
from tests.unit.factories import (
    CONFIG_NAME,
    OPERATOR_NAMESPACE,
    make_monitoring_config_resource,
    make_namespace,
    tokens_secret,
)


@pytest.fixture
def monitoring_config() -> MonitoringConfig:
    return MonitoringConfig.from_resource(make_monitoring_config_resource())


@pytest.fixture
def cluster():
    """
    ClusterClient with every API call mocked.

    By default the application namespace is labeled with CONFIG_NAME, the
    MonitoringConfig exists, secrets in the application namespace are
    missing (and get created) and the tokens secret exists.
    """
    cluster = MagicMock(spec=ClusterClient)
    cluster.read_namespace = AsyncMock(
        return_value=make_namespace({INSTANCE_LABEL_KEY: CONFIG_NAME})
    )
    cluster.read_monitoring_config = AsyncMock(
        return_value=copy.deepcopy(make_monitoring_config_resource())
    )

    async def read_secret(name, namespace):
        if namespace == OPERATOR_NAMESPACE:
            return tokens_secret()
        raise ApiException(status=404, reason="Not Found")

    cluster.read_secret = AsyncMock(side_effect=read_secret)
    cluster.create_secret = AsyncMock(return_value=None)
    cluster.read_object_metadata = AsyncMock()
    cluster.create_event = AsyncMock(return_value=None)
    cluster.read_pod = AsyncMock()
    return cluster
