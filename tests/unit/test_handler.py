"""Unit tests for the pod admission handler."""

import asyncio
import copy
import json
from unittest.mock import AsyncMock, MagicMock, patch

import jsonpatch
import pytest
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError, ReadTimeoutError

from injection_operator.constants import (
    ANNOTATION_AGENT_INJECT,
    ANNOTATION_DATA_ENRICHMENT_INJECT,
    ANNOTATION_INJECTED,
    INJECTION_CONFIG_VOLUME_NAME,
)
from injection_operator.errors import NameCollisionError
from injection_operator.models.admission import AdmissionRequest
from injection_operator.mutation.handler import PodMutationHandler
from injection_operator.utils.events import EventRecorder
from tests.unit.factories import (
    APP_NAMESPACE,
    CONFIG_NAME,
    IMAGE,
    OPERATOR_NAMESPACE,
    env_names,
    make_container,
    make_monitoring_config_resource,
    make_mutators,
    make_namespace,
    make_pod,
    make_request,
)


def make_handler(cluster, metrics=None) -> PodMutationHandler:
    return PodMutationHandler(
        cluster=cluster,
        mutators=make_mutators(cluster),
        recorder=EventRecorder(cluster),
        image=IMAGE,
        operator_namespace=OPERATOR_NAMESPACE,
        metrics=metrics,
    )


def apply(request: AdmissionRequest, patch_ops: list) -> dict:
    return jsonpatch.apply_patch(json.loads(request.object_raw), patch_ops)


def posted_events(cluster) -> list[dict]:
    return [call.args[1] for call in cluster.create_event.await_args_list]


def injected_pod() -> dict:
    """A pod the handler injected earlier, with a container added afterwards."""
    return make_pod(
        containers=[
            make_container("web", env=[{"name": "LD_PRELOAD", "value": "/x"}]),
            make_container("late"),
        ],
        annotations={
            ANNOTATION_INJECTED: "true",
            "injector.monitoring.io/agent-injected": "true",
            ANNOTATION_DATA_ENRICHMENT_INJECT: "false",
        },
    )


class TestFreshInjection:
    """Pods seen for the first time."""

    @pytest.mark.asyncio
    async def test_injects_pod(self, cluster):
        request = make_request(make_pod(containers=[make_container("web")]))

        response = await make_handler(cluster).handle(request)

        assert response.allowed
        assert response.message is None
        assert response.patched
        pod = apply(request, response.patch)
        assert pod["metadata"]["annotations"][ANNOTATION_INJECTED] == "true"
        assert pod["spec"]["initContainers"][0]["name"] == "install-agent"
        volume_names = [v["name"] for v in pod["spec"]["volumes"]]
        assert volume_names.count(INJECTION_CONFIG_VOLUME_NAME) == 1
        assert "LD_PRELOAD" in env_names(pod["spec"]["containers"][0])

        events = posted_events(cluster)
        assert len(events) == 1
        assert events[0]["reason"] == "Inject"
        assert events[0]["type"] == "Normal"
        assert events[0]["message"] == (
            f"Injecting the necessary info into pod app-7d4b9c in namespace {APP_NAMESPACE}"
        )

    @pytest.mark.asyncio
    async def test_namespace_without_label_is_skipped(self, cluster):
        cluster.read_namespace.return_value = make_namespace(labels=None)
        request = make_request(make_pod())

        response = await make_handler(cluster).handle(request)

        assert response.allowed
        assert response.patch == []
        assert response.message is None
        cluster.read_monitoring_config.assert_not_called()
        cluster.create_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_config_without_injection_is_skipped(self, cluster):
        resource = make_monitoring_config_resource()
        resource["spec"]["agent"] = {}
        cluster.read_monitoring_config.return_value = resource

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.patch == []
        assert response.message is None
        cluster.create_secret.assert_not_called()

    @pytest.mark.asyncio
    async def test_all_capabilities_disabled(self, cluster):
        pod = make_pod(
            annotations={
                ANNOTATION_AGENT_INJECT: "false",
                ANNOTATION_DATA_ENRICHMENT_INJECT: "false",
            }
        )

        response = await make_handler(cluster).handle(make_request(pod))

        assert response.patch == []
        cluster.create_secret.assert_not_called()

    @pytest.mark.asyncio
    async def test_config_read_from_operator_namespace(self, cluster):
        await make_handler(cluster).handle(make_request(make_pod()))

        cluster.read_namespace.assert_awaited_once_with(APP_NAMESPACE)
        cluster.read_monitoring_config.assert_awaited_once_with(
            CONFIG_NAME, OPERATOR_NAMESPACE
        )


class TestSoftFailures:
    """Every failure results in an allowed response without a patch."""

    @pytest.mark.asyncio
    async def test_missing_config_emits_warning_event(self, cluster):
        cluster.read_monitoring_config.side_effect = ApiException(status=404, reason="Not Found")

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.allowed
        assert response.patch == []
        assert CONFIG_NAME in response.message
        events = posted_events(cluster)
        assert len(events) == 1
        assert events[0]["type"] == "Warning"
        assert events[0]["reason"] == "MissingConfig"
        assert events[0]["message"] == (
            f"namespace '{APP_NAMESPACE}' is assigned to MonitoringConfig "
            f"'{CONFIG_NAME}' but it doesn't exist"
        )
        assert events[0]["involvedObject"]["kind"] == "MonitoringConfig"
        assert events[0]["involvedObject"]["name"] == CONFIG_NAME

    @pytest.mark.asyncio
    async def test_config_read_error(self, cluster):
        cluster.read_monitoring_config.side_effect = ApiException(status=403, reason="Forbidden")

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.allowed
        assert response.patch == []
        assert "Forbidden" in response.message
        cluster.create_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_namespace_read_error(self, cluster):
        cluster.read_namespace.side_effect = ApiException(status=500, reason="Internal Error")

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.allowed
        assert response.patch == []
        assert "Internal Error" in response.message

    @pytest.mark.asyncio
    async def test_undecodable_pod(self, cluster):
        request = AdmissionRequest(
            uid="uid-1", namespace=APP_NAMESPACE, name="broken", object_raw=b"{not json"
        )

        response = await make_handler(cluster).handle(request)

        assert response.allowed
        assert response.patch == []
        assert response.message.startswith("Failed to inject into pod: broken because")
        assert "cannot decode pod" in response.message
        cluster.read_namespace.assert_not_called()

    @pytest.mark.asyncio
    async def test_provisioning_error(self, cluster):
        cluster.read_secret.side_effect = ApiException(status=500, reason="Internal Error")

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.allowed
        assert response.patch == []
        assert "agent-injection-config" in response.message
        cluster.create_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, cluster):
        cluster.read_namespace.side_effect = RuntimeError("boom")

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.allowed
        assert response.patch == []
        assert "boom" in response.message

    @pytest.mark.asyncio
    async def test_deadline_exceeded(self, cluster):
        async def slow_read(name):
            await asyncio.sleep(5)

        cluster.read_namespace.side_effect = slow_read

        response = await make_handler(cluster).handle(make_request(make_pod()), timeout=0.01)

        assert response.allowed
        assert response.patch == []
        assert "deadline" in response.message

    @pytest.mark.asyncio
    async def test_event_failure_does_not_change_response(self, cluster):
        cluster.create_event.side_effect = ApiException(status=403, reason="Forbidden")

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.patched
        assert response.message is None

    @pytest.mark.asyncio
    async def test_event_transport_failure_does_not_change_response(self, cluster):
        cluster.create_event.side_effect = MaxRetryError(None, "/api/v1/events")

        response = await make_handler(cluster).handle(make_request(make_pod()))

        assert response.patched
        assert response.message is None

    @pytest.mark.asyncio
    async def test_owner_read_timeout_still_injects(self, cluster):
        """The workload falls back to the pod when its owner can't be read."""
        cluster.read_object_metadata.side_effect = ReadTimeoutError(
            None, "/apis/apps/v1", "Read timed out. (read timeout=5.0)"
        )
        pod = make_pod(
            owner_references=[
                {
                    "apiVersion": "apps/v1",
                    "kind": "ReplicaSet",
                    "name": "app-7d4b9c",
                    "controller": True,
                }
            ]
        )

        response = await make_handler(cluster).handle(make_request(pod))

        assert response.patched
        assert response.message is None


class TestAlreadyInjected:
    """Pods carrying the injection marker."""

    @pytest.mark.asyncio
    async def test_reinvocation_disabled_returns_empty_patch(self, cluster):
        response = await make_handler(cluster).handle(make_request(injected_pod()))

        assert response.patch == []
        assert response.message is None
        cluster.create_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_pipeline_never_runs_for_injected_pod(self, cluster):
        cluster.read_monitoring_config.return_value = make_monitoring_config_resource(
            reinvocation=True
        )
        handler = make_handler(cluster)

        with patch.object(handler.pipeline, "run", new=AsyncMock()) as run:
            await handler.handle(make_request(injected_pod()))

        run.assert_not_called()

    @pytest.mark.asyncio
    async def test_reinvocation_repairs_missing_container(self, cluster):
        cluster.read_monitoring_config.return_value = make_monitoring_config_resource(
            reinvocation=True
        )
        pod = injected_pod()
        request = make_request(pod)

        response = await make_handler(cluster).handle(request)

        assert response.patched
        repaired = apply(request, response.patch)
        assert repaired["spec"]["containers"][0] == pod["spec"]["containers"][0]
        assert "LD_PRELOAD" in env_names(repaired["spec"]["containers"][1])
        events = posted_events(cluster)
        assert [e["reason"] for e in events] == ["UpdatePod"]
        assert events[0]["message"] == (
            f"Updating pod app-7d4b9c- in namespace {APP_NAMESPACE} with missing containers"
        )

    @pytest.mark.asyncio
    async def test_reinvocation_without_gaps_returns_empty_patch(self, cluster):
        cluster.read_monitoring_config.return_value = make_monitoring_config_resource(
            reinvocation=True
        )
        pod = injected_pod()
        pod["spec"]["containers"] = pod["spec"]["containers"][:1]

        response = await make_handler(cluster).handle(make_request(pod))

        assert response.patch == []
        cluster.create_event.assert_not_called()


class TestHandlerConstruction:
    """Wiring checks done when the handler is built."""

    def test_name_collision_is_rejected(self, cluster):
        agent, enrichment = make_mutators(cluster)
        clashing = MagicMock()
        clashing.name = "clashing"
        clashing.owned_env_vars = frozenset({"LD_PRELOAD"})
        clashing.owned_volumes = frozenset()

        with pytest.raises(NameCollisionError) as exc_info:
            PodMutationHandler(
                cluster=cluster,
                mutators=[agent, enrichment, clashing],
                recorder=EventRecorder(cluster),
                image=IMAGE,
                operator_namespace=OPERATOR_NAMESPACE,
            )

        assert exc_info.value.owner == "agent"
        assert exc_info.value.claimant == "clashing"


class TestMetrics:
    """Metrics recorded per request."""

    @pytest.mark.asyncio
    async def test_injection_is_recorded(self, cluster):
        metrics = MagicMock()

        await make_handler(cluster, metrics=metrics).handle(make_request(make_pod()))

        outcome = metrics.record_admission.call_args.args[0]
        assert outcome == "injected"
        metrics.record_soft_failure.assert_not_called()

    @pytest.mark.asyncio
    async def test_soft_failure_is_recorded(self, cluster):
        cluster.read_namespace.side_effect = ApiException(status=500, reason="boom")
        metrics = MagicMock()

        await make_handler(cluster, metrics=metrics).handle(make_request(make_pod()))

        assert metrics.record_admission.call_args.args[0] == "soft_failed"
        error = metrics.record_soft_failure.call_args.args[0]
        assert type(error).__name__ == "ConfigLookupError"

    @pytest.mark.asyncio
    async def test_transport_error_is_recorded_as_lookup_error(self, cluster):
        cluster.read_monitoring_config.side_effect = MaxRetryError(
            None, "/apis/injector.monitoring.io/v1"
        )
        metrics = MagicMock()

        await make_handler(cluster, metrics=metrics).handle(make_request(make_pod()))

        error = metrics.record_soft_failure.call_args.args[0]
        assert type(error).__name__ == "ConfigLookupError"

    @pytest.mark.asyncio
    async def test_repaired_containers_are_recorded(self, cluster):
        cluster.read_monitoring_config.return_value = make_monitoring_config_resource(
            reinvocation=True
        )
        metrics = MagicMock()

        await make_handler(cluster, metrics=metrics).handle(
            make_request(copy.deepcopy(injected_pod()))
        )

        metrics.record_repaired_containers.assert_called_once_with(1)
        assert metrics.record_admission.call_args.args[0] == "reinvoked"
