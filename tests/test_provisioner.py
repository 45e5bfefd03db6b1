"""Tests for provisioner.py module."""

import base64
from unittest.mock import MagicMock, patch

import pulumi
import pytest
import yaml

from omes_infra.config import AwsClusterSpec, ClusterSpec, LocalClusterSpec
from omes_infra.constants import GKE_OAUTH_SCOPES
from omes_infra.exceptions import ConfigurationError, ProvisioningError
from omes_infra.provisioner import _first_kubeconfig, provision

ACCOUNT_ID = "123456789012"
GKE_VERSION = "1.30.5-gke.1014001"


@pytest.fixture
def aws_spec():
    return ClusterSpec(
        aws=AwsClusterSpec(
            region="us-west-2",
            vpc_id="vpc-1",
            role="perf",
            private_subnet_ids=["subnet-a", "subnet-b"],
        ),
        node_type="m5.2xlarge",
        node_count=3,
    )


class TestProvisionDispatch:
    """Tests for substrate dispatch."""

    @pytest.mark.parametrize(
        ("document", "strategy"),
        [
            ({"aws": {"region": "us-west-2", "vpc_id": "vpc-1", "role": "perf"}, "node_type": "m5.large"}, "_eks_cluster"),
            ({"gcp": True, "node_type": "e2-standard-8"}, "_gke_cluster"),
            ({"azure": True, "node_type": "Standard_D4s_v3"}, "_aks_cluster"),
        ],
    )
    def test_each_variant_reaches_its_strategy(self, document, strategy):
        """Test that every managed variant is routed to exactly one strategy."""
        spec = ClusterSpec.model_validate(document)
        names = ("_local_cluster", "_eks_cluster", "_gke_cluster", "_aks_cluster")
        patches = {name: patch(f"omes_infra.provisioner.{name}") for name in names}
        mocks = {name: p.start() for name, p in patches.items()}
        try:
            result = provision("perf", spec)
        finally:
            for p in patches.values():
                p.stop()

        mocks[strategy].assert_called_once_with("perf", spec)
        assert result is mocks[strategy].return_value
        for name in names:
            if name != strategy:
                mocks[name].assert_not_called()

    def test_local_variant_dispatch(self, kubeconfig_file):
        """Test that the local variant reaches the passthrough strategy."""
        spec = ClusterSpec(local=LocalClusterSpec(kubeconfig=kubeconfig_file))

        with patch("omes_infra.provisioner._local_cluster") as mock_local:
            provision("perf", spec)

        mock_local.assert_called_once_with("perf", spec)

    def test_unvalidated_empty_spec_rejected(self):
        """Test that a spec built without validation still fails cleanly."""
        spec = ClusterSpec.model_construct()

        with pytest.raises(ConfigurationError, match="exactly one"):
            provision("perf", spec)


class TestLocalCluster:
    """Tests for the local kubeconfig passthrough."""

    def test_credential_is_file_content(self, pulumi_mocks, kubeconfig_file):
        """Test that the credential is the file content, marked secret."""
        result = {}
        spec = ClusterSpec(local=LocalClusterSpec(kubeconfig=kubeconfig_file))

        @pulumi.runtime.test
        def declare():
            cluster = provision("perf", spec)
            result["cluster"] = cluster
            return cluster.credential.apply(lambda text: result.update(credential=text))

        declare()

        assert result["credential"] == kubeconfig_file.read_text()
        assert result["cluster"].network_boundary is None
        assert pulumi_mocks.named("pulumi:providers:kubernetes", "perf")

    def test_unreadable_kubeconfig(self, tmp_path):
        """Test that a missing kubeconfig raises ConfigurationError."""
        spec = ClusterSpec(local=LocalClusterSpec(kubeconfig=tmp_path / "missing"))

        with pytest.raises(ConfigurationError, match="kubeconfig"):
            provision("perf", spec)


class TestEksCluster:
    """Tests for the EKS strategy."""

    def test_node_group_and_credentials(self, pulumi_mocks, aws_spec):
        """Test fixed-size labeled node group and role-based kubeconfig."""
        result = {}

        @pulumi.runtime.test
        def declare():
            with patch("omes_infra.provisioner.eks.Cluster") as mock_eks:
                mock_eks.return_value.kubeconfig = pulumi.Output.from_input({"apiVersion": "v1", "kind": "Config"})
                mock_eks.return_value.node_security_group_id = pulumi.Output.from_input("sg-nodes")
                cluster = provision("perf", aws_spec)
            result["eks"] = mock_eks
            result["cluster"] = cluster
            role = mock_eks.call_args.kwargs["provider_credential_opts"].role_arn
            return pulumi.Output.all(role, cluster.credential, cluster.network_boundary).apply(
                lambda values: result.update(role=values[0], credential=values[1], boundary=values[2])
            )

        declare()

        kwargs = result["eks"].call_args.kwargs
        node_group = kwargs["node_group_options"]
        assert kwargs["name"] == "perf"
        assert kwargs["vpc_id"] == "vpc-1"
        assert kwargs["private_subnet_ids"] == ["subnet-a", "subnet-b"]
        assert kwargs["public_subnet_ids"] is None
        assert node_group.instance_type == "m5.2xlarge"
        assert node_group.desired_capacity == node_group.min_size == node_group.max_size == 3
        assert node_group.node_associate_public_ip_address is False
        assert node_group.labels == {"omes.temporal.io/dedicated": "temporal"}
        # one shared group, so omes pods must still schedule there
        assert node_group.taints is None

        assert result["role"] == f"arn:aws:iam::{ACCOUNT_ID}:role/perf"
        assert result["credential"].startswith("apiVersion: v1")
        assert result["boundary"] == "sg-nodes"
        assert result["cluster"].cloud_provider is not None
        provider = pulumi_mocks.named("pulumi:providers:aws", "perf")
        assert provider.inputs["region"] == "us-west-2"


class TestGkeCluster:
    """Tests for the GKE strategy."""

    def test_cluster_and_synthesized_kubeconfig(self, pulumi_mocks):
        """Test version pinning, node config, and the exec-plugin kubeconfig."""
        result = {}
        spec = ClusterSpec.model_validate({"gcp": True, "node_type": "e2-standard-8", "node_count": 2})

        @pulumi.runtime.test
        def declare():
            cluster = provision("perf", spec)
            result["cluster"] = cluster
            return cluster.credential.apply(lambda text: result.update(credential=text))

        declare()

        gke = pulumi_mocks.named("gcp:container/cluster:Cluster", "perf")
        assert gke.inputs["name"] == "perf"
        assert gke.inputs["initialNodeCount"] == 2
        assert gke.inputs["minMasterVersion"] == GKE_VERSION
        assert gke.inputs["nodeVersion"] == GKE_VERSION
        assert gke.inputs["deletionProtection"] is False
        assert gke.inputs["nodeConfig"]["machineType"] == "e2-standard-8"
        assert gke.inputs["nodeConfig"]["oauthScopes"] == list(GKE_OAUTH_SCOPES)

        document = yaml.safe_load(result["credential"])
        context = "omes-project_us-central1_perf"
        assert document["current-context"] == context
        assert document["clusters"][0]["cluster"] == {
            "certificate-authority-data": "Q0E=",
            "server": "https://34.1.2.3",
        }
        assert document["users"][0]["user"]["exec"]["command"] == "gke-gcloud-auth-plugin"
        assert result["cluster"].network_boundary is None
        assert pulumi_mocks.named("pulumi:providers:kubernetes", "perf")


class TestAksCluster:
    """Tests for the AKS strategy."""

    def test_service_principal_pool_and_credential(self, pulumi_mocks):
        """Test the service principal, the System pool, and the decoded kubeconfig."""
        result = {}
        spec = ClusterSpec.model_validate({"azure": True, "node_type": "Standard_D4s_v3", "node_count": 3})

        @pulumi.runtime.test
        def declare():
            cluster = provision("perf", spec)
            return cluster.credential.apply(lambda text: result.update(credential=text))

        declare()

        principal = pulumi_mocks.named("azuread:index/servicePrincipal:ServicePrincipal", "perf")
        assert principal.inputs["clientId"] == "perf-client"
        password = pulumi_mocks.named("azuread:index/servicePrincipalPassword:ServicePrincipalPassword", "perf")
        assert password.inputs["servicePrincipalId"] == "perf_id"
        assert password.inputs["endDate"] == "2099-01-01T00:00:00Z"

        aks = pulumi_mocks.named("azure-native:containerservice:ManagedCluster", "perf")
        pool = aks.inputs["agentPoolProfiles"][0]
        assert pool["mode"] == "System"
        assert pool["count"] == 3
        assert pool["vmSize"] == "Standard_D4s_v3"
        assert pool["osType"] == "Linux"
        assert aks.inputs["enableRBAC"] is True
        assert aks.inputs["dnsPrefix"] == "perf"

        assert result["credential"] == "apiVersion: v1\nkind: Config\nclusters: []\n"


class TestAksCredentials:
    """Tests for AKS credential extraction."""

    def test_first_entry_decoded(self):
        """Test that the first credential result is decoded."""
        encoded = base64.b64encode(b"apiVersion: v1\n").decode()

        assert _first_kubeconfig([MagicMock(value=encoded), MagicMock(value="ignored")]) == "apiVersion: v1\n"

    def test_no_results(self):
        """Test that an empty credential list raises ProvisioningError."""
        with pytest.raises(ProvisioningError, match="no user credentials"):
            _first_kubeconfig([])
