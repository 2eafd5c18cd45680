"""Unit tests for Kubernetes utility functions."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException
from urllib3.exceptions import ReadTimeoutError

from injection_operator.utils.kubernetes import (
    CLUSTER_ERRORS,
    PARTIAL_METADATA_ACCEPT,
    ClusterClient,
    error_reason,
    field_env_var,
    get_field,
    get_field_bool,
    object_path,
)


@pytest.fixture
def cluster_client():
    cluster_client = ClusterClient(k8s_client=MagicMock(), request_timeout=2.5)
    cluster_client.core_v1 = MagicMock()
    cluster_client.custom_objects = MagicMock()
    return cluster_client


class TestFieldHelpers:
    def test_field_env_var(self):
        assert field_env_var("K8S_PODNAME", "metadata.name") == {
            "name": "K8S_PODNAME",
            "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}},
        }

    @pytest.mark.parametrize(
        "values,expected",
        [(None, "default"), ({}, "default"), ({"key": ""}, ""), ({"key": "v"}, "v")],
    )
    def test_get_field(self, values, expected):
        assert get_field(values, "key", "default") == expected

    @pytest.mark.parametrize(
        "raw,default,expected",
        [
            ("true", False, True),
            ("True", False, True),
            ("false", True, False),
            (" FALSE ", True, False),
            ("yes", True, True),
            ("yes", False, False),
            ("", True, True),
        ],
    )
    def test_get_field_bool(self, raw, default, expected):
        assert get_field_bool({"key": raw}, "key", default) is expected

    def test_get_field_bool_missing_key(self):
        assert get_field_bool(None, "key", True) is True


class TestClusterErrors:
    def test_transport_errors_are_cluster_errors(self):
        assert isinstance(ReadTimeoutError(None, "/api", "Read timed out."), CLUSTER_ERRORS)
        assert isinstance(ApiException(status=404), CLUSTER_ERRORS)

    def test_error_reason_of_api_exception(self):
        assert error_reason(ApiException(status=403, reason="Forbidden")) == "Forbidden"

    def test_error_reason_of_transport_error(self):
        reason = error_reason(ReadTimeoutError(None, "/api", "Read timed out."))

        assert "Read timed out." in reason


class TestObjectPath:
    def test_grouped_api(self):
        assert (
            object_path("apps/v1", "replicasets", "web-1", "app-ns")
            == "/apis/apps/v1/namespaces/app-ns/replicasets/web-1"
        )

    def test_core_api(self):
        assert (
            object_path("v1", "replicationcontrollers", "rc", "app-ns")
            == "/api/v1/namespaces/app-ns/replicationcontrollers/rc"
        )


class TestClusterClient:
    """Every call runs with the configured request timeout."""

    @pytest.mark.asyncio
    async def test_read_namespace(self, cluster_client):
        await cluster_client.read_namespace("app-ns")

        cluster_client.core_v1.read_namespace.assert_called_once_with(
            name="app-ns", _request_timeout=2.5
        )

    @pytest.mark.asyncio
    async def test_read_monitoring_config(self, cluster_client):
        cluster_client.custom_objects.get_namespaced_custom_object.return_value = {
            "spec": {}
        }

        result = await cluster_client.read_monitoring_config("dk1", "injection-system")

        assert result == {"spec": {}}
        cluster_client.custom_objects.get_namespaced_custom_object.assert_called_once_with(
            group="injector.monitoring.io",
            version="v1",
            namespace="injection-system",
            plural="monitoringconfigs",
            name="dk1",
            _request_timeout=2.5,
        )

    @pytest.mark.asyncio
    async def test_create_secret(self, cluster_client):
        body = {"metadata": {"name": "s"}}

        await cluster_client.create_secret("app-ns", body)

        cluster_client.core_v1.create_namespaced_secret.assert_called_once_with(
            namespace="app-ns", body=body, _request_timeout=2.5
        )

    @pytest.mark.asyncio
    async def test_read_object_metadata(self, cluster_client):
        cluster_client.k8s_client.call_api.return_value = {"metadata": {"name": "rs"}}

        result = await cluster_client.read_object_metadata(
            "apps/v1", "replicasets", "rs", "app-ns"
        )

        assert result == {"metadata": {"name": "rs"}}
        args, kwargs = cluster_client.k8s_client.call_api.call_args
        assert args == ("/apis/apps/v1/namespaces/app-ns/replicasets/rs", "GET")
        assert kwargs["header_params"] == {"Accept": PARTIAL_METADATA_ACCEPT}
        assert kwargs["_request_timeout"] == 2.5

    @pytest.mark.asyncio
    async def test_create_event(self, cluster_client):
        await cluster_client.create_event("app-ns", {"reason": "Inject"})

        cluster_client.core_v1.create_namespaced_event.assert_called_once_with(
            namespace="app-ns", body={"reason": "Inject"}, _request_timeout=2.5
        )
