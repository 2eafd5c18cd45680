"""
Pydantic models for MonitoringConfig resources.

A MonitoringConfig describes which monitoring capabilities are injected into
the pods of the namespaces that reference it through the instance label.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from injection_operator.constants import (
    DEPLOYMENT_TYPE_APPLICATION_MONITORING,
    DEPLOYMENT_TYPE_CLOUD_NATIVE,
    FEATURE_WEBHOOK_REINVOCATION_POLICY,
)


class ProxySpec(BaseModel):
    """Proxy used by the agent, given inline or through a secret."""

    model_config = {"populate_by_name": True}

    value: str | None = Field(None, description="Proxy URL")
    value_from: str | None = Field(
        None,
        alias="valueFrom",
        description="Name of a secret holding the proxy URL under the 'proxy' key",
    )


class ApplicationMonitoringSpec(BaseModel):
    """Application-only monitoring: agent binaries injected into pods."""

    model_config = {"populate_by_name": True}

    use_csi_driver: bool = Field(
        False,
        alias="useCSIDriver",
        description="Provision agent binaries through the CSI driver",
    )
    init_resources: dict[str, Any] = Field(
        default_factory=dict,
        alias="initResources",
        description="Resource requirements of the install init container",
    )


class CloudNativeFullStackSpec(BaseModel):
    """Full-stack monitoring with node agents plus application injection."""

    model_config = {"populate_by_name": True}

    init_resources: dict[str, Any] = Field(
        default_factory=dict,
        alias="initResources",
        description="Resource requirements of the install init container",
    )


class AgentSpec(BaseModel):
    """Agent deployment mode. At most one mode may be set."""

    model_config = {"populate_by_name": True}

    application_monitoring: ApplicationMonitoringSpec | None = Field(
        None, alias="applicationMonitoring"
    )
    cloud_native_full_stack: CloudNativeFullStackSpec | None = Field(
        None, alias="cloudNativeFullStack"
    )

    @model_validator(mode="after")
    def validate_single_mode(self):
        if self.application_monitoring is not None and self.cloud_native_full_stack is not None:
            raise ValueError(
                "applicationMonitoring and cloudNativeFullStack are mutually exclusive"
            )
        return self


class MonitoringConfigSpec(BaseModel):
    """Specification of a MonitoringConfig resource."""

    model_config = {"populate_by_name": True}

    api_url: str = Field(..., alias="apiUrl", description="Monitoring API URL")
    tokens: str | None = Field(
        None,
        description="Name of the secret holding the API tokens (defaults to the resource name)",
    )
    proxy: ProxySpec | None = Field(None, description="Proxy configuration")
    network_zone: str | None = Field(
        None, alias="networkZone", description="Network zone for agent traffic"
    )
    skip_cert_check: bool = Field(
        False, alias="skipCertCheck", description="Disable certificate validation"
    )
    agent: AgentSpec = Field(default_factory=AgentSpec)

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("apiUrl must start with http:// or https://")
        return v.rstrip("/")


class MonitoringConfig(BaseModel):
    """A MonitoringConfig resource as read from the cluster."""

    name: str
    namespace: str
    annotations: dict[str, str] = Field(default_factory=dict)
    spec: MonitoringConfigSpec

    @classmethod
    def from_resource(cls, resource: dict[str, Any]) -> "MonitoringConfig":
        """Build the model from a custom object returned by the API."""
        metadata = resource.get("metadata") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            annotations=metadata.get("annotations") or {},
            spec=MonitoringConfigSpec.model_validate(resource.get("spec") or {}),
        )

    @property
    def tokens_secret_name(self) -> str:
        return self.spec.tokens or self.name

    def needs_app_injection(self) -> bool:
        agent = self.spec.agent
        return (
            agent.application_monitoring is not None
            or agent.cloud_native_full_stack is not None
        )

    def cloud_native_fullstack_mode(self) -> bool:
        return self.spec.agent.cloud_native_full_stack is not None

    def needs_csi_driver(self) -> bool:
        if self.cloud_native_fullstack_mode():
            return True
        app_monitoring = self.spec.agent.application_monitoring
        return app_monitoring is not None and app_monitoring.use_csi_driver

    def has_proxy(self) -> bool:
        proxy = self.spec.proxy
        return proxy is not None and bool(proxy.value or proxy.value_from)

    def init_resources(self) -> dict[str, Any]:
        agent = self.spec.agent
        if agent.cloud_native_full_stack is not None:
            return agent.cloud_native_full_stack.init_resources
        if agent.application_monitoring is not None:
            return agent.application_monitoring.init_resources
        return {}

    def deployment_type(self) -> str:
        if self.cloud_native_fullstack_mode():
            return DEPLOYMENT_TYPE_CLOUD_NATIVE
        return DEPLOYMENT_TYPE_APPLICATION_MONITORING

    def feature_enable_webhook_reinvocation_policy(self) -> bool:
        value = self.annotations.get(FEATURE_WEBHOOK_REINVOCATION_POLICY, "false")
        return value.strip().lower() == "true"
