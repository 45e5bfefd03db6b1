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

"""Pulumi program composing provisioning, values, and deployment."""

from __future__ import annotations

import functools
from collections.abc import Callable

import pulumi

from omes_infra import logger
from omes_infra.composer import check_composition, compose
from omes_infra.config import RunConfig, Substrate
from omes_infra.constants import KUBECONFIG_OUTPUT, OMES_APP_NAME
from omes_infra.monitoring import deploy_monitoring
from omes_infra.provisioner import provision
from omes_infra.utils import read_text_file
from omes_infra.workload import deploy


def preflight(run_config: RunConfig) -> None:
    """Run every input check that needs no cloud access.

    Errors raised inside a Pulumi program reach the caller only as engine
    output, so configuration problems are caught here first.

    Args:
        run_config: Validated run configuration.

    Raises:
        ConfigurationError: If a referenced file is unreadable or the values
            would not enable exactly one persistence driver.
        UnsupportedSubstrateError: If self-hosting is requested on GKE or AKS.
    """
    cluster = run_config.cluster
    if cluster.substrate() is Substrate.LOCAL:
        read_text_file(cluster.local.kubeconfig, "kubeconfig")

    temporal = run_config.temporal
    check_composition(temporal, cluster, temporal.values)
    if temporal.tls_enabled:
        read_text_file(temporal.tls_cert, "TLS certificate")
        read_text_file(temporal.tls_key, "TLS key")


def run_program(run_config: RunConfig, stack_name: str) -> None:
    """Declare every resource of one run.

    Args:
        run_config: Validated run configuration.
        stack_name: Pulumi stack name; also names the cluster.
    """
    logger.info("Building program for stack '%s'", stack_name)
    cluster = provision(stack_name, run_config.cluster)

    if run_config.monitoring is not None:
        deploy_monitoring(stack_name, cluster, run_config.monitoring)

    temporal = run_config.temporal
    composed = compose(temporal, cluster, run_config.cluster, temporal.values)
    deploy(OMES_APP_NAME, cluster, composed, temporal, run_config.omes)

    pulumi.export(KUBECONFIG_OUTPUT, cluster.credential)


def build(run_config: RunConfig, stack_name: str) -> Callable[[], None]:
    """Bind the configuration into a zero-argument inline program."""
    return functools.partial(run_program, run_config, stack_name)
