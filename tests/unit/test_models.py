"""
Unit tests for Pydantic models.

These tests verify that the data models correctly validate input
and provide proper error messages for invalid configurations.
"""

import base64
import json

import pytest
from pydantic import ValidationError

from injection_operator.constants import (
    DEPLOYMENT_TYPE_APPLICATION_MONITORING,
    DEPLOYMENT_TYPE_CLOUD_NATIVE,
)
from injection_operator.models.admission import AdmissionRequest, AdmissionResponse
from injection_operator.models.monitoring_config import (
    MonitoringConfig,
    MonitoringConfigSpec,
)
from tests.unit.factories import CONFIG_NAME, make_monitoring_config_resource, make_pod


class TestMonitoringConfigModels:
    """Test cases for MonitoringConfig models."""

    def test_spec_defaults(self):
        """Test default values for MonitoringConfigSpec."""
        spec = MonitoringConfigSpec(apiUrl="https://tenant.example.com/api")

        assert spec.tokens is None
        assert spec.proxy is None
        assert spec.network_zone is None
        assert spec.skip_cert_check is False
        assert spec.agent.application_monitoring is None
        assert spec.agent.cloud_native_full_stack is None

    def test_api_url_is_normalized(self):
        spec = MonitoringConfigSpec(apiUrl="https://tenant.example.com/api/")
        assert spec.api_url == "https://tenant.example.com/api"

    def test_api_url_requires_scheme(self):
        with pytest.raises(ValidationError) as exc_info:
            MonitoringConfigSpec(apiUrl="tenant.example.com/api")

        assert "apiUrl must start with http:// or https://" in str(exc_info.value)

    def test_agent_modes_are_exclusive(self):
        with pytest.raises(ValidationError):
            MonitoringConfigSpec.model_validate(
                {
                    "apiUrl": "https://tenant.example.com/api",
                    "agent": {"applicationMonitoring": {}, "cloudNativeFullStack": {}},
                }
            )

    def test_from_resource(self):
        config = MonitoringConfig.from_resource(
            make_monitoring_config_resource(networkZone="zone-a")
        )

        assert config.name == CONFIG_NAME
        assert config.tokens_secret_name == CONFIG_NAME
        assert config.spec.network_zone == "zone-a"
        assert config.needs_app_injection()

    def test_explicit_tokens_secret(self):
        config = MonitoringConfig.from_resource(
            make_monitoring_config_resource(tokens="shared-tokens")
        )
        assert config.tokens_secret_name == "shared-tokens"

    def test_no_agent_mode_needs_no_injection(self):
        resource = make_monitoring_config_resource()
        resource["spec"]["agent"] = {}

        config = MonitoringConfig.from_resource(resource)

        assert not config.needs_app_injection()
        assert config.init_resources() == {}

    def test_application_monitoring(self):
        config = MonitoringConfig.from_resource(
            make_monitoring_config_resource(
                application_monitoring={
                    "initResources": {"limits": {"cpu": "100m"}},
                }
            )
        )

        assert not config.needs_csi_driver()
        assert config.deployment_type() == DEPLOYMENT_TYPE_APPLICATION_MONITORING
        assert config.init_resources() == {"limits": {"cpu": "100m"}}

    def test_application_monitoring_with_csi_driver(self):
        config = MonitoringConfig.from_resource(
            make_monitoring_config_resource(application_monitoring={"useCSIDriver": True})
        )
        assert config.needs_csi_driver()

    def test_cloud_native_full_stack(self):
        config = MonitoringConfig.from_resource(
            make_monitoring_config_resource(cloud_native={})
        )

        assert config.cloud_native_fullstack_mode()
        assert config.needs_csi_driver()
        assert config.deployment_type() == DEPLOYMENT_TYPE_CLOUD_NATIVE

    @pytest.mark.parametrize(
        "proxy,expected",
        [
            (None, False),
            ({}, False),
            ({"value": "http://proxy:3128"}, True),
            ({"valueFrom": "proxy-secret"}, True),
        ],
    )
    def test_has_proxy(self, proxy, expected):
        fields = {"proxy": proxy} if proxy is not None else {}
        config = MonitoringConfig.from_resource(make_monitoring_config_resource(**fields))
        assert config.has_proxy() is expected

    @pytest.mark.parametrize(
        "value,expected",
        [("true", True), ("TRUE", True), (" true ", True), ("false", False), ("yes", False)],
    )
    def test_reinvocation_feature_flag(self, value, expected):
        resource = make_monitoring_config_resource()
        resource["metadata"]["annotations"] = {
            "feature.injector.monitoring.io/enable-webhook-reinvocation-policy": value
        }

        config = MonitoringConfig.from_resource(resource)

        assert config.feature_enable_webhook_reinvocation_policy() is expected

    def test_reinvocation_feature_flag_defaults_to_off(self):
        config = MonitoringConfig.from_resource(make_monitoring_config_resource())
        assert not config.feature_enable_webhook_reinvocation_policy()


class TestAdmissionModels:
    """Test cases for the AdmissionReview exchange."""

    def test_request_from_review(self):
        pod = make_pod()
        review = {
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "request": {
                "uid": "abc",
                "namespace": "app-ns",
                "operation": "CREATE",
                "dryRun": True,
                "object": pod,
            },
        }

        request = AdmissionRequest.from_review(review)

        assert request.uid == "abc"
        assert request.namespace == "app-ns"
        assert request.name == ""
        assert request.dry_run is True
        assert json.loads(request.object_raw) == pod

    @pytest.mark.parametrize(
        "review",
        [
            None,
            [],
            {"kind": "AdmissionReview"},
            {"request": "not-a-dict"},
            {"request": {"namespace": "app-ns"}},
        ],
    )
    def test_invalid_review(self, review):
        with pytest.raises(ValueError):
            AdmissionRequest.from_review(review)

    def test_request_is_immutable(self):
        request = AdmissionRequest(uid="abc")
        with pytest.raises(ValidationError):
            request.uid = "other"

    def test_empty_response_review(self):
        review = AdmissionResponse(uid="abc").to_review()

        assert review == {
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "response": {"uid": "abc", "allowed": True},
        }

    def test_patched_response_review(self):
        patch = [{"op": "add", "path": "/metadata/annotations", "value": {"a": "b"}}]

        response = AdmissionResponse(uid="abc", patch=patch)
        review = response.to_review()["response"]

        assert response.patched
        assert review["patchType"] == "JSONPatch"
        assert json.loads(base64.b64decode(review["patch"])) == patch

    def test_soft_failure_response_review(self):
        review = AdmissionResponse(uid="abc", message="Failed to inject").to_review()

        assert review["response"]["allowed"] is True
        assert review["response"]["status"] == {"message": "Failed to inject"}
        assert "patch" not in review["response"]
