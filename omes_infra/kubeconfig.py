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

"""Kubeconfig rendering for each cluster substrate.

EKS returns a kubeconfig object that only needs serializing. GKE returns none,
so one is synthesized around the ``gke-gcloud-auth-plugin`` exec plugin. AKS
returns a base64-encoded document.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

import yaml

from omes_infra.constants import (
    EXEC_CREDENTIAL_API_VERSION,
    GKE_AUTH_INSTALL_HINT,
    GKE_AUTH_PLUGIN,
)
from omes_infra.exceptions import ProvisioningError


def role_arn(account_id: str, role: str) -> str:
    """Build the ARN of an IAM role in the caller's account.

    Args:
        account_id: AWS account identifier of the caller.
        role: IAM role name.

    Returns:
        The role ARN used by the generated kubeconfig.
    """
    return f"arn:aws:iam::{account_id}:role/{role}"


def serialize_kubeconfig(kubeconfig: dict[str, Any] | str) -> str:
    """Render a native kubeconfig object as YAML text.

    Args:
        kubeconfig: Kubeconfig mapping, or text that is passed through.

    Returns:
        Kubeconfig in YAML form.
    """
    if isinstance(kubeconfig, str):
        return kubeconfig
    return yaml.safe_dump(kubeconfig, sort_keys=False)


def gke_context_name(project: str, zone: str, cluster_name: str) -> str:
    """Context name in the format ``gcloud container clusters get-credentials`` uses."""
    return f"{project}_{zone}_{cluster_name}"


def gke_kubeconfig(
    project: str,
    zone: str,
    cluster_name: str,
    endpoint: str,
    ca_certificate: str,
) -> str:
    """Synthesize a kubeconfig for a GKE cluster.

    The user entry delegates to the GKE auth plugin instead of embedding a
    token, so credentials are fresh whenever a client connects.

    Args:
        project: GCP project hosting the cluster.
        zone: Cluster location.
        cluster_name: GKE cluster name.
        endpoint: API server IP or hostname, without scheme.
        ca_certificate: Base64-encoded cluster CA certificate.

    Returns:
        Kubeconfig in YAML form.
    """
    context = gke_context_name(project, zone, cluster_name)
    document = {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{
            "name": context,
            "cluster": {
                "certificate-authority-data": ca_certificate,
                "server": f"https://{endpoint}",
            },
        }],
        "contexts": [{
            "name": context,
            "context": {"cluster": context, "user": context},
        }],
        "current-context": context,
        "preferences": {},
        "users": [{
            "name": context,
            "user": {
                "exec": {
                    "apiVersion": EXEC_CREDENTIAL_API_VERSION,
                    "command": GKE_AUTH_PLUGIN,
                    "installHint": GKE_AUTH_INSTALL_HINT,
                    "provideClusterInfo": True,
                },
            },
        }],
    }
    return yaml.safe_dump(document, sort_keys=False)


def decode_kubeconfig(encoded: str) -> str:
    """Decode the base64 kubeconfig returned by the AKS credentials API.

    Args:
        encoded: Base64-encoded kubeconfig document.

    Returns:
        Kubeconfig text.

    Raises:
        ProvisioningError: If the payload is empty or not valid base64 UTF-8.
    """
    if not encoded:
        raise ProvisioningError("AKS returned an empty kubeconfig")
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as err:
        raise ProvisioningError(f"AKS returned an undecodable kubeconfig: {err}") from err
