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

"""Configuration models, run settings, and config loading/display."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.panel import Panel

from omes_infra import console
from omes_infra.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_DB_INSTANCE_CLASS,
    DEFAULT_DB_PASSWORD,
    DEFAULT_DB_STORAGE_GB,
    DEFAULT_DB_USERNAME,
    DEFAULT_LANGUAGE,
    DEFAULT_PROJECT_NAME,
    DEFAULT_SCENARIO,
    DEFAULT_SCENARIO_DURATION,
    DEFAULT_STACK_NAME,
    DEFAULT_TEMPORAL_HOST,
    DEFAULT_TEMPORAL_NAMESPACE,
    OMES_IMAGE_REPO,
)
from omes_infra.exceptions import ConfigurationError


class _Spec(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


def _presence_flag(value: Any) -> Any:
    """Accept ``true``/``false`` as shorthand for an empty or absent section."""
    if value is True:
        return {}
    if value is False:
        return None
    return value


# ============================================================================
# Cluster specification
# ============================================================================

class Substrate(str, Enum):
    """Platform hosting the Kubernetes control plane."""

    LOCAL = "local"
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"


class LocalClusterSpec(_Spec):
    """Pre-existing cluster reached through a kubeconfig file."""

    kubeconfig: Path


class AwsClusterSpec(_Spec):
    """EKS cluster placement.

    Attributes:
        region: AWS region for the cluster and any RDS backend.
        vpc_id: VPC that hosts the cluster nodes.
        role: IAM role name assumed by the generated kubeconfig.
        public_subnet_ids: Subnets for public load balancers.
        private_subnet_ids: Subnets for the worker nodes.
        availability_zones: Zones available to the cluster, first one hosts RDS.
        rds_subnet_group: DB subnet group name, required for a self-hosted backend.
    """

    region: str
    vpc_id: str
    role: str
    public_subnet_ids: list[str] = Field(default_factory=list)
    private_subnet_ids: list[str] = Field(default_factory=list)
    availability_zones: list[str] = Field(default_factory=list)
    rds_subnet_group: str | None = None


class GcpClusterSpec(_Spec):
    """GKE cluster; project and zone come from the ``gcp:*`` stack config."""


class AzureClusterSpec(_Spec):
    """AKS cluster; location comes from the ``azure-native:*`` stack config."""


class ClusterSpec(_Spec):
    """Tagged union of cluster substrates; exactly one variant is populated.

    Attributes:
        local: Local kubeconfig passthrough.
        aws: EKS cluster settings.
        gcp: GKE cluster marker.
        azure: AKS cluster marker.
        node_type: Instance type / machine type / VM size for managed nodes.
        node_count: Fixed node pool size (desired = min = max).
    """

    local: LocalClusterSpec | None = None
    aws: AwsClusterSpec | None = None
    gcp: GcpClusterSpec | None = None
    azure: AzureClusterSpec | None = None
    node_type: str | None = None
    node_count: int = Field(default=1, ge=1, le=1000)

    @field_validator("gcp", "azure", mode="before")
    @classmethod
    def _accept_flag(cls, value: Any) -> Any:
        return _presence_flag(value)

    @model_validator(mode="after")
    def _check_variant(self) -> ClusterSpec:
        substrate = self.substrate()
        if substrate is not Substrate.LOCAL and not self.node_type:
            raise ConfigurationError(f"cluster.node_type is required for {substrate.value} clusters")
        return self

    def substrate(self) -> Substrate:
        """Return the populated variant's tag.

        Raises:
            ConfigurationError: If zero or several variants are populated.
        """
        populated = [s for s in Substrate if getattr(self, s.value) is not None]
        if len(populated) != 1:
            names = ", ".join(s.value for s in populated) or "none"
            raise ConfigurationError(
                f"cluster must set exactly one of local, aws, gcp, azure (got: {names})"
            )
        return populated[0]


# ============================================================================
# Temporal (coordination service)
# ============================================================================

class SelfHostedSpec(_Spec):
    """Sizing and credentials for a backend provisioned by this program."""

    database_instance_class: str = DEFAULT_DB_INSTANCE_CLASS
    database_storage_gb: int = Field(default=DEFAULT_DB_STORAGE_GB, ge=20)
    database_username: str = DEFAULT_DB_USERNAME
    database_password: SecretStr = SecretStr(DEFAULT_DB_PASSWORD)


class CoordinationServiceSpec(_Spec):
    """Temporal server settings.

    Attributes:
        self_hosted: Present when the server and its backend are deployed here.
        host: Frontend address the omes pools connect to.
        tls_cert: Client certificate path; set together with ``tls_key``.
        tls_key: Client key path; set together with ``tls_cert``.
        namespace: Temporal namespace used by the load test.
        task_queue: Run identifier passed to omes as ``--run-id``.
        values: Helm values that override the computed defaults.
    """

    self_hosted: SelfHostedSpec | None = None
    host: str = DEFAULT_TEMPORAL_HOST
    tls_cert: Path | None = None
    tls_key: Path | None = None
    namespace: str = DEFAULT_TEMPORAL_NAMESPACE
    task_queue: str
    values: dict[str, Any] = Field(default_factory=dict)

    @field_validator("self_hosted", mode="before")
    @classmethod
    def _accept_flag(cls, value: Any) -> Any:
        return _presence_flag(value)

    @model_validator(mode="after")
    def _check_tls_pair(self) -> CoordinationServiceSpec:
        if (self.tls_cert is None) != (self.tls_key is None):
            raise ConfigurationError("temporal.tls_cert and temporal.tls_key must be set together")
        return self

    @property
    def tls_enabled(self) -> bool:
        return self.tls_cert is not None and self.tls_key is not None


# ============================================================================
# omes workload
# ============================================================================

class WorkerSpec(_Spec):
    pods: int = Field(default=1, ge=0)
    cpu: str = "1"
    memory: str = "1Gi"
    workflow_pollers: int = Field(default=16, ge=1)
    activity_pollers: int = Field(default=16, ge=1)


class ScenarioSpec(_Spec):
    pods: int = Field(default=1, ge=0)
    cpu: str = "1"
    memory: str = "1Gi"
    concurrent_workflows: int = Field(default=10, ge=1)
    duration: str = Field(default=DEFAULT_SCENARIO_DURATION, pattern=r"^(\d+[smh])+$")


class OmesSpec(_Spec):
    """omes image, scenario, and pool sizing."""

    version: str
    scenario: str = DEFAULT_SCENARIO
    language: str = DEFAULT_LANGUAGE
    workers: WorkerSpec = WorkerSpec()
    runner: ScenarioSpec = ScenarioSpec()

    @property
    def image(self) -> str:
        return f"{OMES_IMAGE_REPO}:{self.version}"


class MonitoringSpec(_Spec):
    external_services: dict[str, Any] = Field(default_factory=dict)


class RunConfig(_Spec):
    """Everything one run needs, read once from the configuration document."""

    cluster: ClusterSpec
    temporal: CoordinationServiceSpec
    omes: OmesSpec
    monitoring: MonitoringSpec | None = None
    stack_config: dict[str, str] = Field(default_factory=dict)


# ============================================================================
# Run settings
# ============================================================================

class RunSettings(BaseSettings):
    """Pulumi project/stack selection, auto-loaded from OMES_* env vars.

    Attributes:
        project: Pulumi project name.
        stack: Pulumi stack name; also names the cluster.
        work_dir: Directory holding Pulumi.yaml, or None for an inline project.
        config_file: YAML configuration document.
    """

    model_config = SettingsConfigDict(env_prefix="OMES_", extra="ignore")

    project: str = DEFAULT_PROJECT_NAME
    stack: str = Field(default=DEFAULT_STACK_NAME, pattern=r"^[a-zA-Z0-9_.-]+$")
    work_dir: Path | None = None
    config_file: Path = Path(DEFAULT_CONFIG_FILE)


def load_run_config(path: Path) -> RunConfig:
    """Read and validate the configuration document.

    Args:
        path: YAML file with ``cluster``, ``temporal``, ``omes`` and optional
            ``monitoring`` and ``stack_config`` sections.

    Returns:
        The validated run configuration.

    Raises:
        ConfigurationError: If the file is unreadable, not YAML, or invalid.
    """
    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except OSError as err:
        raise ConfigurationError(f"Cannot read config file {path}: {err.strerror}") from err
    except yaml.YAMLError as err:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {err}") from err

    if not isinstance(document, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    try:
        return RunConfig.model_validate(document)
    except ValidationError as err:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in err.errors()
        )
        raise ConfigurationError(f"Invalid config file {path}: {problems}") from err


# ============================================================================
# Display
# ============================================================================

def display_config(settings: RunSettings, run_config: RunConfig) -> None:
    """Print the resolved configuration, omitting secrets.

    Args:
        settings: Resolved project and stack settings.
        run_config: Validated run configuration.
    """
    console.print(Panel.fit("Configuration", style="bold blue"))

    cluster = run_config.cluster
    substrate = cluster.substrate()
    console.print("[yellow]Stack:[/yellow]")
    console.print(f"  project         : {settings.project}")
    console.print(f"  stack           : {settings.stack}")

    console.print("[yellow]Cluster:[/yellow]")
    console.print(f"  substrate       : {substrate.value}")
    if substrate is Substrate.LOCAL:
        console.print(f"  kubeconfig      : {cluster.local.kubeconfig}")
    else:
        console.print(f"  node_type       : {cluster.node_type}")
        console.print(f"  node_count      : {cluster.node_count}")
    if substrate is Substrate.AWS:
        console.print(f"  region          : {cluster.aws.region}")
        console.print(f"  vpc_id          : {cluster.aws.vpc_id}")

    temporal = run_config.temporal
    console.print("[yellow]Temporal:[/yellow]")
    console.print(f"  self_hosted     : {temporal.self_hosted is not None}")
    console.print(f"  host            : {temporal.host}")
    console.print(f"  namespace       : {temporal.namespace}")
    console.print(f"  task_queue      : {temporal.task_queue}")
    console.print(f"  tls             : {temporal.tls_enabled}")

    omes = run_config.omes
    console.print("[yellow]omes:[/yellow]")
    console.print(f"  image           : {omes.image}")
    console.print(f"  scenario        : {omes.scenario}")
    console.print(f"  workers         : {omes.workers.pods} x {omes.workers.cpu}/{omes.workers.memory}")
    console.print(f"  runner          : {omes.runner.pods} x {omes.runner.cpu}/{omes.runner.memory}")

    if run_config.monitoring is not None:
        console.print("[yellow]Monitoring:[/yellow]")
        console.print(f"  external        : {', '.join(run_config.monitoring.external_services) or '(none)'}")
