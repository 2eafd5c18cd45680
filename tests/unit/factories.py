"""Builders for pods, MonitoringConfigs and admission requests used across unit tests."""

import base64
import json

from kubernetes import client

from injection_operator.constants import FEATURE_WEBHOOK_REINVOCATION_POLICY
from injection_operator.models.admission import AdmissionRequest
from injection_operator.mutation.agent import AgentPodMutator
from injection_operator.mutation.enrichment import DataEnrichmentPodMutator
from injection_operator.mutation.owner import OwnerChainResolver
from injection_operator.utils.secret_manager import SecretProvisioner

OPERATOR_NAMESPACE = "injection-system"
APP_NAMESPACE = "app-ns"
CONFIG_NAME = "dk1"
CLUSTER_ID = "cluster-uid-1234"
IMAGE = "registry.example.com/injection-operator:0.1.0"


def make_container(name: str, image: str | None = None, env=None) -> dict:
    container = {"name": name, "image": image or f"{name}:latest"}
    if env is not None:
        container["env"] = env
    return container


def make_pod(
    containers=None,
    annotations=None,
    owner_references=None,
    name: str | None = None,
    generate_name: str | None = "app-7d4b9c-",
) -> dict:
    metadata: dict = {"namespace": APP_NAMESPACE}
    if name:
        metadata["name"] = name
    if generate_name:
        metadata["generateName"] = generate_name
    if annotations is not None:
        metadata["annotations"] = annotations
    if owner_references is not None:
        metadata["ownerReferences"] = owner_references
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": metadata,
        "spec": {
            "containers": containers
            if containers is not None
            else [make_container("app")],
        },
    }


def make_monitoring_config_resource(
    reinvocation: bool = False,
    application_monitoring: dict | None = None,
    cloud_native: dict | None = None,
    **spec_fields,
) -> dict:
    annotations = {}
    if reinvocation:
        annotations[FEATURE_WEBHOOK_REINVOCATION_POLICY] = "true"

    agent: dict = {}
    if cloud_native is not None:
        agent["cloudNativeFullStack"] = cloud_native
    else:
        agent["applicationMonitoring"] = (
            application_monitoring if application_monitoring is not None else {}
        )

    spec = {"apiUrl": "https://tenant.example.com/api", "agent": agent}
    spec.update(spec_fields)
    return {
        "apiVersion": "injector.monitoring.io/v1",
        "kind": "MonitoringConfig",
        "metadata": {
            "name": CONFIG_NAME,
            "namespace": OPERATOR_NAMESPACE,
            "annotations": annotations,
        },
        "spec": spec,
    }


def make_request(pod: dict, uid: str = "0d6f3e2a-1111-2222-3333-444455556666"):
    return AdmissionRequest(
        uid=uid,
        namespace=APP_NAMESPACE,
        object_raw=json.dumps(pod).encode(),
    )


def make_namespace(labels: dict | None = None, uid: str = "ns-uid") -> client.V1Namespace:
    return client.V1Namespace(
        metadata=client.V1ObjectMeta(name=APP_NAMESPACE, labels=labels, uid=uid)
    )


def tokens_secret() -> client.V1Secret:
    return client.V1Secret(
        metadata=client.V1ObjectMeta(name=CONFIG_NAME, namespace=OPERATOR_NAMESPACE),
        data={
            "apiToken": base64.b64encode(b"api-token").decode(),
            "dataIngestToken": base64.b64encode(b"ingest-token").decode(),
        },
    )


def env_names(container: dict) -> list[str]:
    return [env["name"] for env in container.get("env") or []]


def mount_names(container: dict) -> list[str]:
    return [mount["name"] for mount in container.get("volumeMounts") or []]




def make_mutators(cluster, operator_version: str = "0.1.0") -> list:
    """The production mutators, in pipeline order, wired to a mocked cluster."""
    secrets = SecretProvisioner(cluster, OPERATOR_NAMESPACE, CLUSTER_ID)
    resolver = OwnerChainResolver(cluster)
    return [
        AgentPodMutator(secrets, CLUSTER_ID, operator_version),
        DataEnrichmentPodMutator(secrets, resolver, CLUSTER_ID, operator_version),
    ]
