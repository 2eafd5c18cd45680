"""
Constants used throughout the injection operator.

This module defines all constant values used by the operator including:
- Workload-config custom resource coordinates
- Pod annotations and namespace labels
- Environment variable, volume and secret names written into pods
- Event reasons and well-known owner kinds
"""

# MonitoringConfig custom resource
MONITORING_CONFIG_GROUP = "injector.monitoring.io"
MONITORING_CONFIG_VERSION = "v1"
MONITORING_CONFIG_PLURAL = "monitoringconfigs"
MONITORING_CONFIG_KIND = "MonitoringConfig"

# Namespace opt-in label, value is the MonitoringConfig name
INSTANCE_LABEL_KEY = "injector.monitoring.io/instance"

# Pod annotations
ANNOTATION_PREFIX = "injector.monitoring.io/"
ANNOTATION_INJECTED = ANNOTATION_PREFIX + "injected"
ANNOTATION_AGENT_INJECT = ANNOTATION_PREFIX + "agent-inject"
ANNOTATION_AGENT_INJECTED = ANNOTATION_PREFIX + "agent-injected"
ANNOTATION_DATA_ENRICHMENT_INJECT = ANNOTATION_PREFIX + "data-enrichment-inject"
ANNOTATION_DATA_ENRICHMENT_INJECTED = ANNOTATION_PREFIX + "data-enrichment-injected"
ANNOTATION_INSTALL_PATH = ANNOTATION_PREFIX + "install-path"
ANNOTATION_FLAVOR = ANNOTATION_PREFIX + "flavor"
ANNOTATION_TECHNOLOGIES = ANNOTATION_PREFIX + "technologies"
ANNOTATION_INSTALLER_URL = ANNOTATION_PREFIX + "installer-url"
ANNOTATION_FAILURE_POLICY = ANNOTATION_PREFIX + "failure-policy"

# MonitoringConfig feature flags
FEATURE_ANNOTATION_PREFIX = "feature.injector.monitoring.io/"
FEATURE_WEBHOOK_REINVOCATION_POLICY = (
    FEATURE_ANNOTATION_PREFIX + "enable-webhook-reinvocation-policy"
)

# Annotation defaults
DEFAULT_INSTALL_PATH = "/opt/agent"
DEFAULT_FLAVOR = "default"
DEFAULT_TECHNOLOGIES = "all"
DEFAULT_FAILURE_POLICY = "silent"
FAILURE_POLICY_FAIL = "fail"

# Init container
INSTALL_CONTAINER_NAME = "install-agent"
INSTALL_CONTAINER_ARGS = ["init"]
CONFIG_DIR_MOUNT = "/mnt/config"
BIN_DIR_MOUNT = "/mnt/bin"
SHARE_DIR_MOUNT = "/mnt/share"
ENRICHMENT_DIR_MOUNT = "/mnt/enrichment"
ENRICHMENT_PATH = "/var/lib/agent/enrichment"
ENRICHMENT_ENDPOINT_PATH = "/var/lib/agent/enrichment/endpoint"

# Init container bookkeeping environment variables
CONTAINER_COUNT_ENV = "CONTAINERS_COUNT"
FAILURE_POLICY_ENV = "FAILURE_POLICY"
K8S_POD_NAME_ENV = "K8S_PODNAME"
K8S_POD_UID_ENV = "K8S_PODUID"
K8S_BASE_POD_NAME_ENV = "K8S_BASEPODNAME"
K8S_NAMESPACE_ENV = "K8S_NAMESPACE"
K8S_NODE_NAME_ENV = "K8S_NODE_NAME"
CONTAINER_NAME_ENV_TEMPLATE = "CONTAINER_{index}_NAME"
CONTAINER_IMAGE_ENV_TEMPLATE = "CONTAINER_{index}_IMAGE"

# Agent installer environment variables (init container)
INSTALLER_FLAVOR_ENV = "FLAVOR"
INSTALLER_TECH_ENV = "TECHNOLOGIES"
INSTALL_PATH_ENV = "INSTALLPATH"
INSTALLER_URL_ENV = "INSTALLER_URL"
MODE_ENV = "MODE"
AGENT_INJECTED_ENV = "AGENT_INJECTED"
PROVISIONED_VOLUME_MODE = "provisioned"
INSTALLER_VOLUME_MODE = "installer"

# Agent environment variables (application containers)
PRELOAD_ENV = "LD_PRELOAD"
PRELOAD_LIBRARY_PATH = "/agent/lib64/libagentproc.so"
DEPLOYMENT_METADATA_ENV = "AGENT_DEPLOYMENT_METADATA"
PROXY_ENV = "AGENT_PROXY"
NETWORK_ZONE_ENV = "AGENT_NETWORK_ZONE"

# Data-enrichment environment variables (init container)
WORKLOAD_KIND_ENV = "WORKLOAD_KIND"
WORKLOAD_NAME_ENV = "WORKLOAD_NAME"
DATA_ENRICHMENT_INJECTED_ENV = "DATA_ENRICHMENT_INJECTED"

# Volumes
INJECTION_CONFIG_VOLUME_NAME = "injection-config"
AGENT_BIN_VOLUME_NAME = "agent-bin"
AGENT_SHARE_VOLUME_NAME = "agent-share"
DATA_ENRICHMENT_VOLUME_NAME = "data-enrichment"
DATA_ENRICHMENT_ENDPOINT_VOLUME_NAME = "data-enrichment-endpoint"

# Agent mount points inside application containers
LD_PRELOAD_MOUNT_PATH = "/etc/ld.so.preload"
LD_PRELOAD_SUB_PATH = "ld.so.preload"
CONTAINER_CONF_MOUNT_PATH = "/var/lib/agent/config/container.conf"
CUSTOM_KEYS_MOUNT_PATH = "/var/lib/agent/customkeys"
CUSTOM_KEYS_SUB_PATH = "custom.properties"

# CSI driver for provisioned agent binaries
CSI_DRIVER_NAME = "csi.injector.monitoring.io"
CSI_VOLUME_ATTRIBUTE_MODE = "mode"
CSI_VOLUME_ATTRIBUTE_CONFIG = "monitoringConfig"
CSI_APP_MODE = "app"

# Secrets provisioned in application namespaces
INIT_SECRET_NAME = "agent-injection-config"
INIT_SECRET_CONFIG_KEY = "config"
PROXY_SECRET_KEY = "proxy"
ENDPOINT_SECRET_NAME = "agent-enrichment-endpoint"
ENDPOINT_SECRET_KEY = "endpoint.properties"
API_TOKEN_KEY = "apiToken"
DATA_INGEST_TOKEN_KEY = "dataIngestToken"
MANAGED_BY_LABEL_KEY = "injector.monitoring.io/managed-by"
MANAGED_BY_LABEL_VALUE = "injection-operator"

# Deployment metadata
DEPLOYMENT_TYPE_APPLICATION_MONITORING = "application_monitoring"
DEPLOYMENT_TYPE_CLOUD_NATIVE = "cloud_native_fullstack"
ORCHESTRATION_TECH = "Operator"

# Event reasons
EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"
INJECT_EVENT = "Inject"
UPDATE_POD_EVENT = "UpdatePod"
MISSING_CONFIG_EVENT = "MissingConfig"
EVENT_SOURCE_COMPONENT = "injection-webhook"

# Owner references that are followed when resolving the workload of a pod,
# as (kind, apiVersion) pairs mapped to the resource plural
WELL_KNOWN_WORKLOADS: dict[tuple[str, str], str] = {
    ("ReplicaSet", "apps/v1"): "replicasets",
    ("Deployment", "apps/v1"): "deployments",
    ("ReplicationController", "v1"): "replicationcontrollers",
    ("StatefulSet", "apps/v1"): "statefulsets",
    ("DaemonSet", "apps/v1"): "daemonsets",
    ("Job", "batch/v1"): "jobs",
    ("CronJob", "batch/v1"): "cronjobs",
    ("DeploymentConfig", "apps.openshift.io/v1"): "deploymentconfigs",
}
POD_KIND = "Pod"
DEFAULT_OWNER_CHAIN_MAX_DEPTH = 10

# Admission review
ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_REVIEW_KIND = "AdmissionReview"
PATCH_TYPE_JSON = "JSONPatch"
