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

"""Cluster provisioning for local, EKS, GKE, and AKS substrates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pulumi
import pulumi_aws as aws
import pulumi_azuread as azuread
import pulumi_eks as eks
import pulumi_gcp as gcp
import pulumi_kubernetes as k8s
from pulumi_azure_native import containerservice, resources

from omes_infra import logger
from omes_infra.config import ClusterSpec, Substrate
from omes_infra.constants import (
    AKS_AGENT_POOL_NAME,
    AKS_OS_DISK_SIZE_GB,
    AKS_SP_PASSWORD_END_DATE,
    DEDICATED_LABEL_KEY,
    DEDICATED_LABEL_VALUE,
    GKE_OAUTH_SCOPES,
)
from omes_infra.exceptions import ConfigurationError, ProvisioningError
from omes_infra.kubeconfig import decode_kubeconfig, gke_kubeconfig, role_arn, serialize_kubeconfig
from omes_infra.utils import read_text_file


@dataclass(frozen=True)
class Cluster:
    """Uniform handle to a provisioned cluster.

    Attributes:
        connection: Kubernetes provider used for every resource on the cluster.
        credential: Secret kubeconfig text.
        network_boundary: Node security group id, set for EKS only.
        cloud_provider: Region-pinned AWS provider, set for EKS only.
    """

    connection: k8s.Provider
    credential: pulumi.Output[str]
    network_boundary: pulumi.Output[str] | None = None
    cloud_provider: pulumi.ProviderResource | None = None


def provision(name: str, spec: ClusterSpec) -> Cluster:
    """Declare the cluster described by *spec* and return its handle.

    Args:
        name: Resource name; also the cluster name on managed substrates.
        spec: Cluster specification with exactly one populated variant.

    Returns:
        The cluster handle. Callers never need to know which substrate ran.

    Raises:
        ConfigurationError: If *spec* has zero or several variants, or the
            local kubeconfig is unreadable.
    """
    substrate = spec.substrate()
    logger.info("Declaring %s cluster '%s'", substrate.value, name)
    match substrate:
        case Substrate.LOCAL:
            return _local_cluster(name, spec)
        case Substrate.AWS:
            return _eks_cluster(name, spec)
        case Substrate.GCP:
            return _gke_cluster(name, spec)
        case Substrate.AZURE:
            return _aks_cluster(name, spec)
        case _:
            raise ConfigurationError(f"Unknown cluster substrate: {substrate!r}")


# ============================================================================
# Local
# ============================================================================

def _local_cluster(name: str, spec: ClusterSpec) -> Cluster:
    kubeconfig = read_text_file(spec.local.kubeconfig, "kubeconfig")
    credential = pulumi.Output.secret(kubeconfig)
    return Cluster(
        connection=k8s.Provider(name, kubeconfig=credential),
        credential=credential,
    )


# ============================================================================
# EKS
# ============================================================================

def _eks_cluster(name: str, spec: ClusterSpec) -> Cluster:
    """EKS cluster with a fixed-size node group.

    The generated kubeconfig assumes ``spec.aws.role`` in the caller's
    account. Resizing the node group requires another run.
    """
    aws_spec = spec.aws
    aws_provider = aws.Provider(name, region=aws_spec.region)

    identity = aws.get_caller_identity_output(opts=pulumi.InvokeOptions(provider=aws_provider))
    role = identity.account_id.apply(lambda account_id: role_arn(account_id, aws_spec.role))

    cluster = eks.Cluster(
        name,
        name=name,
        vpc_id=aws_spec.vpc_id,
        public_subnet_ids=aws_spec.public_subnet_ids or None,
        private_subnet_ids=aws_spec.private_subnet_ids or None,
        provider_credential_opts=eks.KubeconfigOptionsArgs(role_arn=role),
        node_group_options=eks.ClusterNodeGroupOptionsArgs(
            instance_type=spec.node_type,
            desired_capacity=spec.node_count,
            min_size=spec.node_count,
            max_size=spec.node_count,
            node_associate_public_ip_address=False,
            labels={DEDICATED_LABEL_KEY: DEDICATED_LABEL_VALUE},
        ),
        opts=pulumi.ResourceOptions(providers={"aws": aws_provider}),
    )

    credential = pulumi.Output.secret(cluster.kubeconfig.apply(serialize_kubeconfig))
    return Cluster(
        connection=k8s.Provider(name, kubeconfig=credential),
        credential=credential,
        network_boundary=cluster.node_security_group_id,
        cloud_provider=aws_provider,
    )


# ============================================================================
# GKE
# ============================================================================

def _render_gke_kubeconfig(parts: list[Any]) -> str:
    project, location, cluster_name, endpoint, ca_certificate = parts
    return gke_kubeconfig(project, location, cluster_name, endpoint, ca_certificate)


def _gke_cluster(name: str, spec: ClusterSpec) -> Cluster:
    """GKE cluster pinned to the latest master version.

    Delete protection is off so a stack can be torn down without a manual
    step.
    """
    engine_version = gcp.container.get_engine_versions_output().latest_master_version

    cluster = gcp.container.Cluster(
        name,
        name=name,
        initial_node_count=spec.node_count,
        min_master_version=engine_version,
        node_version=engine_version,
        deletion_protection=False,
        node_config=gcp.container.ClusterNodeConfigArgs(
            machine_type=spec.node_type,
            oauth_scopes=list(GKE_OAUTH_SCOPES),
        ),
    )

    kubeconfig = pulumi.Output.all(
        cluster.project,
        cluster.location,
        cluster.name,
        cluster.endpoint,
        cluster.master_auth.cluster_ca_certificate,
    ).apply(_render_gke_kubeconfig)
    credential = pulumi.Output.secret(kubeconfig)
    return Cluster(
        connection=k8s.Provider(name, kubeconfig=credential),
        credential=credential,
    )


# ============================================================================
# AKS
# ============================================================================

def _first_kubeconfig(results: list[Any]) -> str:
    if not results:
        raise ProvisioningError("AKS returned no user credentials")
    return decode_kubeconfig(results[0].value)


def _aks_cluster(name: str, spec: ClusterSpec) -> Cluster:
    """AKS cluster backed by a dedicated service principal.

    The service principal secret expires in 2099 so long-lived test clusters
    keep working.
    """
    resource_group = resources.ResourceGroup(name)

    application = azuread.Application(name, display_name=name)
    principal = azuread.ServicePrincipal(name, client_id=application.client_id)
    password = azuread.ServicePrincipalPassword(
        name,
        service_principal_id=principal.id,
        end_date=AKS_SP_PASSWORD_END_DATE,
    )

    cluster = containerservice.ManagedCluster(
        name,
        resource_group_name=resource_group.name,
        agent_pool_profiles=[containerservice.ManagedClusterAgentPoolProfileArgs(
            count=spec.node_count,
            mode="System",
            name=AKS_AGENT_POOL_NAME,
            os_disk_size_gb=AKS_OS_DISK_SIZE_GB,
            os_type="Linux",
            type="VirtualMachineScaleSets",
            vm_size=spec.node_type,
        )],
        enable_rbac=True,
        dns_prefix=name,
        node_resource_group=name,
        service_principal_profile=containerservice.ManagedClusterServicePrincipalProfileArgs(
            client_id=application.client_id,
            secret=password.value,
        ),
    )

    creds = containerservice.list_managed_cluster_user_credentials_output(
        resource_group_name=resource_group.name,
        resource_name=cluster.name,
    )
    credential = pulumi.Output.secret(creds.kubeconfigs.apply(_first_kubeconfig))
    return Cluster(
        connection=k8s.Provider(name, kubeconfig=credential),
        credential=credential,
    )
