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

"""Temporal deployment values and the persistence backend they point at."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
from pulumi_kubernetes.helm.v3 import Chart, ChartOpts, FetchOpts

from omes_infra import logger
from omes_infra.config import AwsClusterSpec, ClusterSpec, CoordinationServiceSpec, SelfHostedSpec, Substrate
from omes_infra.constants import (
    HELM_CHART_POSTGRESQL,
    HELM_REPO_BITNAMI_URL,
    MYSQL_ENGINE,
    MYSQL_ENGINE_VERSION,
    MYSQL_PORT,
    MYSQL_SQL_DRIVER,
    NS_DATABASE,
    POSTGRES_HOST,
    POSTGRES_PORT,
    POSTGRES_SQL_DRIVER,
)
from omes_infra.exceptions import ConfigurationError, UnsupportedSubstrateError
from omes_infra.provisioner import Cluster
from omes_infra.values import (
    SqlBackend,
    Values,
    base_values,
    dedicated_node_values,
    deep_merge,
    driver_toggles,
    enabled_drivers,
    persistence_values,
)

DB_RESOURCE_NAME = "temporal-db"


@dataclass(frozen=True)
class ComposedValues:
    """Temporal chart values plus what must be ready before the chart.

    Attributes:
        values: Complete values tree for the Temporal chart.
        depends_on: Resources (or an output resolving to them) the chart
            must wait for; empty when no backend is provisioned here.
    """

    values: Values
    depends_on: Any = field(default_factory=list)


def _backend_driver(substrate: Substrate) -> str:
    """Chart driver of the backend provisioned for a self-hosted server.

    Raises:
        UnsupportedSubstrateError: If backend automation is unavailable.
    """
    match substrate:
        case Substrate.LOCAL:
            return "postgresql"
        case Substrate.AWS:
            return "mysql"
        case _:
            raise UnsupportedSubstrateError(
                f"Self-hosted Temporal is not supported on {substrate.value} clusters; "
                "use local or aws, or point temporal.host at an external server"
            )


def check_composition(coord: CoordinationServiceSpec, substrate: ClusterSpec, overrides: Values) -> str | None:
    """Validate a composition without declaring anything.

    Args:
        coord: Temporal settings.
        substrate: Cluster specification.
        overrides: User values.

    Returns:
        Chart driver of the backend to provision, or None when the server is
        external.

    Raises:
        UnsupportedSubstrateError: If self-hosting is requested on GKE or AKS.
        ConfigurationError: If the merged toggles would not enable exactly
            one persistence driver.
    """
    kind = substrate.substrate()
    driver = None
    defaults = base_values()
    if coord.self_hosted is not None:
        driver = _backend_driver(kind)
        defaults = deep_merge(defaults, driver_toggles(driver))

    drivers = enabled_drivers(deep_merge(defaults, overrides))
    if len(drivers) != 1:
        raise ConfigurationError(
            "Exactly one persistence driver must be enabled in the Temporal values "
            f"(enabled: {', '.join(drivers) or 'none'})"
        )
    return driver


def compose(
    coord: CoordinationServiceSpec,
    cluster: Cluster,
    substrate: ClusterSpec,
    overrides: Values,
) -> ComposedValues:
    """Build the Temporal chart values for this cluster.

    Defaults are layered in order: base defaults, backend connection
    settings, dedicated node placement (RDS path only), then *overrides*.
    The driver check runs before any backend resource is declared.

    Args:
        coord: Temporal settings; ``self_hosted`` selects backend provisioning.
        cluster: Provisioned cluster handle.
        substrate: Cluster specification the handle was built from.
        overrides: User values that win over every default.

    Returns:
        The merged values and the resources the chart depends on.

    Raises:
        UnsupportedSubstrateError: If self-hosting is requested on GKE or AKS.
        ConfigurationError: If the result would not enable exactly one driver,
            or the AWS spec lacks an RDS subnet group.
    """
    driver = check_composition(coord, substrate, overrides)
    if driver is None:
        return ComposedValues(values=deep_merge(base_values(), overrides))

    if substrate.substrate() is Substrate.AWS:
        backend, depends_on = _rds_mysql(cluster, substrate.aws, coord.self_hosted)
        layers = [persistence_values(backend), dedicated_node_values()]
    else:
        backend, depends_on = _in_cluster_postgres(cluster, coord.self_hosted)
        layers = [persistence_values(backend)]

    defaults = base_values()
    for layer in layers:
        defaults = deep_merge(defaults, layer)
    logger.info("Temporal persistence: %s via %s", backend.chart_driver, backend.sql_driver)
    return ComposedValues(values=deep_merge(defaults, overrides), depends_on=depends_on)


# ============================================================================
# Backends
# ============================================================================

def _in_cluster_postgres(cluster: Cluster, self_hosted: SelfHostedSpec) -> tuple[SqlBackend, Any]:
    """Bitnami PostgreSQL in the ``database`` namespace."""
    opts = pulumi.ResourceOptions(provider=cluster.connection)
    password = pulumi.Output.secret(self_hosted.database_password.get_secret_value())

    namespace = k8s.core.v1.Namespace(
        NS_DATABASE,
        metadata=k8s.meta.v1.ObjectMetaArgs(name=NS_DATABASE),
        opts=opts,
    )
    postgres = Chart(
        HELM_CHART_POSTGRESQL,
        ChartOpts(
            chart=HELM_CHART_POSTGRESQL,
            namespace=namespace.metadata.name,
            fetch_opts=FetchOpts(repo=HELM_REPO_BITNAMI_URL),
            values={
                "auth": {
                    "username": self_hosted.database_username,
                    "password": password,
                },
            },
        ),
        opts=opts,
    )

    backend = SqlBackend(
        chart_driver="postgresql",
        sql_driver=POSTGRES_SQL_DRIVER,
        host=POSTGRES_HOST,
        port=POSTGRES_PORT,
        user=self_hosted.database_username,
        password=password,
    )
    return backend, postgres.ready


def _rds_mysql(
    cluster: Cluster,
    aws_spec: AwsClusterSpec,
    self_hosted: SelfHostedSpec,
) -> tuple[SqlBackend, Any]:
    """RDS MySQL reachable from the cluster's node security group.

    The ingress rule references the node group by id and waits for the
    instance, so it depends on both.
    """
    if not aws_spec.rds_subnet_group:
        raise ConfigurationError("cluster.aws.rds_subnet_group is required for self-hosted Temporal on aws")
    if cluster.network_boundary is None:
        raise ConfigurationError("Self-hosted Temporal on aws needs the cluster's node security group")

    opts = pulumi.ResourceOptions(provider=cluster.cloud_provider)
    password = pulumi.Output.secret(self_hosted.database_password.get_secret_value())

    security_group = aws.ec2.SecurityGroup(
        DB_RESOURCE_NAME,
        vpc_id=aws_spec.vpc_id,
        description="Temporal persistence database",
        opts=opts,
    )
    instance = aws.rds.Instance(
        DB_RESOURCE_NAME,
        engine=MYSQL_ENGINE,
        engine_version=MYSQL_ENGINE_VERSION,
        instance_class=self_hosted.database_instance_class,
        allocated_storage=self_hosted.database_storage_gb,
        username=self_hosted.database_username,
        password=password,
        db_subnet_group_name=aws_spec.rds_subnet_group,
        vpc_security_group_ids=[security_group.id],
        availability_zone=aws_spec.availability_zones[0] if aws_spec.availability_zones else None,
        publicly_accessible=False,
        skip_final_snapshot=True,
        opts=opts,
    )
    aws.ec2.SecurityGroupRule(
        f"{DB_RESOURCE_NAME}-ingress",
        type="ingress",
        protocol="tcp",
        from_port=MYSQL_PORT,
        to_port=MYSQL_PORT,
        security_group_id=security_group.id,
        source_security_group_id=cluster.network_boundary,
        opts=pulumi.ResourceOptions(provider=cluster.cloud_provider, depends_on=[instance]),
    )

    backend = SqlBackend(
        chart_driver=MYSQL_ENGINE,
        sql_driver=MYSQL_SQL_DRIVER,
        host=instance.address,
        port=MYSQL_PORT,
        user=self_hosted.database_username,
        password=password,
    )
    return backend, [instance]
