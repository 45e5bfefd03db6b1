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

"""Grafana k8s-monitoring chart installation."""

from __future__ import annotations

import pulumi
from pulumi_kubernetes.helm.v3 import Chart, ChartOpts, FetchOpts

from omes_infra.config import MonitoringSpec
from omes_infra.constants import (
    HELM_CHART_MONITORING,
    HELM_RELEASE_MONITORING,
    HELM_REPO_GRAFANA_URL,
    METRIC_RELABELING_RULES,
    NS_DEFAULT,
)
from omes_infra.provisioner import Cluster
from omes_infra.values import Values


def monitoring_values(cluster_name: str, spec: MonitoringSpec) -> Values:
    """Values for the k8s-monitoring chart.

    Only metrics from the database, temporal and omes namespaces are kept,
    per-attempt Temporal series are dropped, and logs and cost reporting are
    off.
    """
    return {
        "cluster": {"name": cluster_name},
        "externalServices": spec.external_services,
        "metrics": {"extraMetricRelabelingRules": METRIC_RELABELING_RULES},
        "logs": {
            "enabled": False,
            "pod_logs": {"enabled": False},
            "cluster_events": {"enabled": False},
        },
        "opencost": {"enabled": False},
    }


def deploy_monitoring(name: str, cluster: Cluster, spec: MonitoringSpec) -> Chart:
    """Install the monitoring chart; it depends only on the cluster.

    Args:
        name: Cluster name reported to the monitoring backend.
        cluster: Provisioned cluster handle.
        spec: External service endpoints and credentials.

    Returns:
        The monitoring chart.
    """
    return Chart(
        HELM_RELEASE_MONITORING,
        ChartOpts(
            chart=HELM_CHART_MONITORING,
            namespace=NS_DEFAULT,
            fetch_opts=FetchOpts(repo=HELM_REPO_GRAFANA_URL),
            values=monitoring_values(name, spec),
        ),
        opts=pulumi.ResourceOptions(provider=cluster.connection),
    )
