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

"""Temporal chart and omes load-test workload deployment."""

from __future__ import annotations

from dataclasses import dataclass

import pulumi
import pulumi_kubernetes as k8s
from pulumi_kubernetes.helm.v3 import Chart, ChartOpts, FetchOpts

from omes_infra import logger
from omes_infra.composer import ComposedValues
from omes_infra.config import CoordinationServiceSpec, OmesSpec
from omes_infra.constants import (
    HELM_CHART_TEMPORAL,
    HELM_REPO_TEMPORAL_URL,
    LABEL_APP_NAME,
    METRICS_CONTAINER_PORT,
    METRICS_PORT_NAME,
    METRICS_SERVICE_PORT,
    NS_TEMPORAL,
    OMES_APP_NAME,
    OMES_BINARY,
    OMES_DIR_NAME,
    OMES_MONITOR,
    OMES_SCENARIO_RUNNER,
    OMES_WORKER,
    PROM_LISTEN_ADDRESS,
    TLS_MOUNT_PATH,
    TLS_SECRET_NAME,
)
from omes_infra.provisioner import Cluster
from omes_infra.transforms import chart_transformation, ensure_namespace_init_container
from omes_infra.utils import labels_for, read_text_file


@dataclass(frozen=True)
class WorkloadDeployment:
    """Resources declared for one load-test run."""

    namespace: k8s.core.v1.Namespace
    worker: k8s.apps.v1.StatefulSet
    scenario: k8s.apps.v1.StatefulSet
    monitor: k8s.apiextensions.CustomResource
    tls_secret: k8s.core.v1.Secret | None = None
    temporal: Chart | None = None


# ============================================================================
# Command lines
# ============================================================================

def tls_flags(enabled: bool) -> list[str]:
    """omes TLS flags pointing at the mounted secret, or nothing."""
    if not enabled:
        return []
    return [
        "--tls",
        "--tls-cert-path", f"{TLS_MOUNT_PATH}/tls.crt",
        "--tls-key-path", f"{TLS_MOUNT_PATH}/tls.key",
    ]


def worker_command(coord: CoordinationServiceSpec, omes: OmesSpec) -> list[str]:
    """Argument list for the ``run-worker`` pool."""
    return [
        OMES_BINARY,
        "run-worker",
        "--language", omes.language,
        "--dir-name", OMES_DIR_NAME,
        "--namespace", coord.namespace,
        "--scenario", omes.scenario,
        "--run-id", coord.task_queue,
        *tls_flags(coord.tls_enabled),
        "--worker-prom-listen-address", PROM_LISTEN_ADDRESS,
        "--worker-max-concurrent-activity-pollers", str(omes.workers.activity_pollers),
        "--worker-max-concurrent-workflow-pollers", str(omes.workers.workflow_pollers),
        "--server-address", coord.host,
    ]


def scenario_command(coord: CoordinationServiceSpec, omes: OmesSpec) -> list[str]:
    """Argument list for the ``run-scenario`` pool."""
    return [
        OMES_BINARY,
        "run-scenario",
        "--namespace", coord.namespace,
        "--scenario", omes.scenario,
        "--duration", omes.runner.duration,
        "--max-concurrent", str(omes.runner.concurrent_workflows),
        "--run-id", coord.task_queue,
        *tls_flags(coord.tls_enabled),
        "--prom-listen-address", PROM_LISTEN_ADDRESS,
        "--server-address", coord.host,
    ]


# ============================================================================
# Temporal
# ============================================================================

def deploy_temporal(cluster: Cluster, composed: ComposedValues, coord: CoordinationServiceSpec) -> Chart:
    """Install the Temporal chart once its backend is ready.

    Args:
        cluster: Provisioned cluster handle.
        composed: Chart values and the backend resources to wait for.
        coord: Temporal settings; ``namespace`` is pre-created on first boot.

    Returns:
        The chart; its ``ready`` output gates the load test.
    """
    opts = pulumi.ResourceOptions(provider=cluster.connection)
    namespace = k8s.core.v1.Namespace(
        NS_TEMPORAL,
        metadata=k8s.meta.v1.ObjectMetaArgs(name=NS_TEMPORAL),
        opts=opts,
    )
    return Chart(
        HELM_CHART_TEMPORAL,
        ChartOpts(
            chart=HELM_CHART_TEMPORAL,
            namespace=namespace.metadata.name,
            fetch_opts=FetchOpts(repo=HELM_REPO_TEMPORAL_URL),
            values=composed.values,
            transformations=[chart_transformation(ensure_namespace_init_container(coord.namespace))],
        ),
        opts=pulumi.ResourceOptions(provider=cluster.connection, depends_on=composed.depends_on),
    )


# ============================================================================
# omes pools
# ============================================================================

def _stateful_pool(
    name: str,
    namespace: k8s.core.v1.Namespace,
    image: str,
    command: list[str],
    replicas: int,
    cpu: str,
    memory: str,
    tls_secret: k8s.core.v1.Secret | None,
    opts: pulumi.ResourceOptions,
) -> k8s.apps.v1.StatefulSet:
    """Headless Service plus StatefulSet exposing a metrics port."""
    labels = labels_for(name)
    service = k8s.core.v1.Service(
        name,
        metadata=k8s.meta.v1.ObjectMetaArgs(namespace=namespace.metadata.name, name=name, labels=labels),
        spec=k8s.core.v1.ServiceSpecArgs(
            cluster_ip="None",
            selector=labels,
            publish_not_ready_addresses=True,
            ports=[k8s.core.v1.ServicePortArgs(
                name=METRICS_PORT_NAME,
                port=METRICS_SERVICE_PORT,
                target_port=METRICS_PORT_NAME,
            )],
        ),
        opts=opts,
    )

    volume_mounts = []
    volumes = []
    if tls_secret is not None:
        volume_mounts.append(k8s.core.v1.VolumeMountArgs(name=TLS_SECRET_NAME, mount_path=TLS_MOUNT_PATH))
        volumes.append(k8s.core.v1.VolumeArgs(
            name=TLS_SECRET_NAME,
            secret=k8s.core.v1.SecretVolumeSourceArgs(secret_name=tls_secret.metadata.name),
        ))

    return k8s.apps.v1.StatefulSet(
        name,
        metadata=k8s.meta.v1.ObjectMetaArgs(namespace=namespace.metadata.name, name=name, labels=labels),
        spec=k8s.apps.v1.StatefulSetSpecArgs(
            service_name=service.metadata.name,
            replicas=replicas,
            selector=k8s.meta.v1.LabelSelectorArgs(match_labels=labels),
            template=k8s.core.v1.PodTemplateSpecArgs(
                metadata=k8s.meta.v1.ObjectMetaArgs(labels=labels),
                spec=k8s.core.v1.PodSpecArgs(
                    containers=[k8s.core.v1.ContainerArgs(
                        name=name,
                        image=image,
                        image_pull_policy="Always",
                        command=command,
                        ports=[k8s.core.v1.ContainerPortArgs(
                            name=METRICS_PORT_NAME,
                            container_port=METRICS_CONTAINER_PORT,
                        )],
                        volume_mounts=volume_mounts,
                        resources=k8s.core.v1.ResourceRequirementsArgs(
                            requests={"cpu": cpu, "memory": memory},
                        ),
                    )],
                    volumes=volumes,
                    restart_policy="OnFailure",
                ),
            ),
        ),
        opts=opts,
    )


def deploy(
    name: str,
    cluster: Cluster,
    composed: ComposedValues,
    coord: CoordinationServiceSpec,
    omes: OmesSpec,
) -> WorkloadDeployment:
    """Declare the Temporal chart (when self-hosted) and the omes load test.

    TLS files are read before any resource is declared. In the self-hosted
    path both pools wait for the Temporal chart; otherwise they only need
    the namespace.

    Args:
        name: Namespace for the load test.
        cluster: Provisioned cluster handle.
        composed: Temporal chart values and their dependencies.
        coord: Temporal settings.
        omes: Image and pool sizing.

    Returns:
        Handles to the declared resources.

    Raises:
        ConfigurationError: If a TLS file cannot be read.
    """
    tls_material = None
    if coord.tls_enabled:
        tls_material = {
            "tls.key": read_text_file(coord.tls_key, "TLS key"),
            "tls.crt": read_text_file(coord.tls_cert, "TLS certificate"),
        }

    opts = pulumi.ResourceOptions(provider=cluster.connection)
    namespace = k8s.core.v1.Namespace(
        name,
        metadata=k8s.meta.v1.ObjectMetaArgs(name=name),
        opts=opts,
    )

    tls_secret = None
    if tls_material is not None:
        tls_secret = k8s.core.v1.Secret(
            TLS_SECRET_NAME,
            metadata=k8s.meta.v1.ObjectMetaArgs(namespace=namespace.metadata.name),
            type="kubernetes.io/tls",
            string_data=tls_material,
            opts=opts,
        )

    temporal = None
    pool_opts = opts
    if coord.self_hosted is not None:
        temporal = deploy_temporal(cluster, composed, coord)
        pool_opts = pulumi.ResourceOptions(provider=cluster.connection, depends_on=temporal.ready)

    logger.info("Declaring omes pools in namespace '%s' (image %s)", name, omes.image)
    worker = _stateful_pool(
        OMES_WORKER, namespace, omes.image, worker_command(coord, omes),
        omes.workers.pods, omes.workers.cpu, omes.workers.memory, tls_secret, pool_opts,
    )
    scenario = _stateful_pool(
        OMES_SCENARIO_RUNNER, namespace, omes.image, scenario_command(coord, omes),
        omes.runner.pods, omes.runner.cpu, omes.runner.memory, tls_secret, pool_opts,
    )

    monitor = k8s.apiextensions.CustomResource(
        OMES_MONITOR,
        api_version="monitoring.coreos.com/v1",
        kind="ServiceMonitor",
        metadata=k8s.meta.v1.ObjectMetaArgs(namespace=namespace.metadata.name, name=OMES_MONITOR),
        spec={
            "selector": {"matchLabels": {LABEL_APP_NAME: OMES_APP_NAME}},
            "endpoints": [{"port": METRICS_PORT_NAME}],
        },
        opts=opts,
    )

    return WorkloadDeployment(
        namespace=namespace,
        worker=worker,
        scenario=scenario,
        monitor=monitor,
        tls_secret=tls_secret,
        temporal=temporal,
    )
