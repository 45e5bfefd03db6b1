# /*
# Copyright 2026 The Omes Infra Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Constants for charts, labels, ports, and run defaults."""

from __future__ import annotations

# -- Pulumi project --
DEFAULT_PROJECT_NAME = "omes-infra"
DEFAULT_STACK_NAME = "dev"
DEFAULT_CONFIG_FILE = "omes.yaml"
KUBECONFIG_OUTPUT = "kubeconfig"

# -- Helm repos and charts --
HELM_REPO_TEMPORAL_URL = "https://go.temporal.io/helm-charts"
HELM_REPO_BITNAMI_URL = "https://charts.bitnami.com/bitnami"
HELM_REPO_GRAFANA_URL = "https://grafana.github.io/helm-charts"
HELM_CHART_TEMPORAL = "temporal"
HELM_CHART_POSTGRESQL = "postgresql"
HELM_CHART_MONITORING = "k8s-monitoring"
HELM_RELEASE_MONITORING = "grafana-k8s-monitoring"

# -- Namespaces --
NS_DATABASE = "database"
NS_TEMPORAL = "temporal"
NS_DEFAULT = "default"

# -- Persistence --
PERSISTENCE_DRIVERS = ("cassandra", "mysql", "postgresql")
DISABLED_COMPONENTS = ("elasticsearch", "prometheus", "grafana")
PERSISTENCE_STORES = {
    "default": "temporal_persistence",
    "visibility": "temporal_visibility",
}
SQL_MAX_CONNS = 20
SQL_MAX_CONN_LIFETIME = "1h"
POSTGRES_SQL_DRIVER = "postgres12"
POSTGRES_HOST = "postgresql.database"
POSTGRES_PORT = 5432
MYSQL_SQL_DRIVER = "mysql8"
MYSQL_ENGINE = "mysql"
MYSQL_ENGINE_VERSION = "8.0"
MYSQL_PORT = 3306
DEFAULT_DB_USERNAME = "temporal"
DEFAULT_DB_PASSWORD = "temporal"
DEFAULT_DB_INSTANCE_CLASS = "db.t3.medium"
DEFAULT_DB_STORAGE_GB = 20

DYNAMIC_CONFIG_UPDATE_WORKFLOW = "frontend.enableUpdateWorkflowExecution"

# -- Dedicated capacity --
DEDICATED_LABEL_KEY = "omes.temporal.io/dedicated"
DEDICATED_LABEL_VALUE = "temporal"

# -- Cluster substrates --
GKE_OAUTH_SCOPES = (
    "https://www.googleapis.com/auth/compute",
    "https://www.googleapis.com/auth/devstorage.read_only",
    "https://www.googleapis.com/auth/logging.write",
    "https://www.googleapis.com/auth/monitoring",
)
GKE_AUTH_PLUGIN = "gke-gcloud-auth-plugin"
GKE_AUTH_INSTALL_HINT = (
    "Install gke-gcloud-auth-plugin for use with kubectl by following "
    "https://cloud.google.com/blog/products/containers-kubernetes/kubectl-auth-changes-in-gke"
)
EXEC_CREDENTIAL_API_VERSION = "client.authentication.k8s.io/v1beta1"
AKS_SP_PASSWORD_END_DATE = "2099-01-01T00:00:00Z"
AKS_AGENT_POOL_NAME = "agentpool"
AKS_OS_DISK_SIZE_GB = 30

# -- Temporal chart --
ADMINTOOLS_DEPLOYMENT = "temporal-admintools"
CREATE_NAMESPACE_CONTAINER = "create-namespace"

# -- omes workload --
OMES_IMAGE_REPO = "temporaliotest/omes"
OMES_BINARY = "/app/temporal-omes"
OMES_APP_NAME = "omes"
OMES_WORKER = "worker"
OMES_SCENARIO_RUNNER = "run-scenario"
OMES_MONITOR = "omes-monitor"
OMES_DIR_NAME = "prepared"
DEFAULT_SCENARIO = "throughput_stress"
DEFAULT_LANGUAGE = "go"
DEFAULT_SCENARIO_DURATION = "2h"
DEFAULT_TEMPORAL_HOST = "temporal-frontend.temporal:7233"
DEFAULT_TEMPORAL_NAMESPACE = "default"
PROM_LISTEN_ADDRESS = "0.0.0.0:8000"
METRICS_CONTAINER_PORT = 8000
METRICS_SERVICE_PORT = 9090
METRICS_PORT_NAME = "metrics"
TLS_MOUNT_PATH = "/etc/temporal/tls"
TLS_SECRET_NAME = "tls"

# -- Labels --
LABEL_APP_NAME = "app.kubernetes.io/name"
LABEL_APP_COMPONENT = "app.kubernetes.io/component"

# -- Monitoring --
METRIC_RELABELING_RULES = """\
rule {
  source_labels = ["namespace"]
  regex = "^$|database|temporal|omes"
  action = "keep"
}

rule {
  source_labels = ["__name__"]
  regex = "temporal_.*_attempt_.*"
  action = "drop"
}

rule {
  source_labels = ["pod"]
  target_label = "instance"
  action = "replace"
}
"""

# -- Engine error classification --
NOT_READY_MARKERS = (
    "timed out waiting",
    "resource is not ready",
    "failed to become available",
)
