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

"""Transformations applied to resources rendered from Helm charts."""

from __future__ import annotations

import shlex
from collections.abc import Callable
from typing import Any

import pulumi

from omes_infra.constants import ADMINTOOLS_DEPLOYMENT, CREATE_NAMESPACE_CONTAINER

Resource = dict[str, Any]
ResourceTransform = Callable[[Resource], Resource]


def _matches(obj: Resource, kind: str, name: str, api_version: str | None = None) -> bool:
    if obj.get("kind") != kind:
        return False
    if api_version is not None and obj.get("apiVersion") != api_version:
        return False
    return (obj.get("metadata") or {}).get("name") == name


def ensure_namespace_command(namespace: str) -> list[str]:
    """Shell command that creates a Temporal namespace unless it exists."""
    quoted = shlex.quote(namespace)
    return [
        "bash", "-c",
        f"temporal operator namespace describe {quoted} || temporal operator namespace create {quoted}",
    ]


def ensure_namespace_init_container(namespace: str) -> ResourceTransform:
    """Create *namespace* on the Temporal server before admintools starts.

    The admintools container is copied into an init container that runs
    ``describe || create``. The chart has no option for pre-creating
    application namespaces.

    Args:
        namespace: Temporal namespace the load test runs in.

    Returns:
        A transform that returns a new admintools Deployment and returns every
        other resource unchanged.
    """
    def transform(obj: Resource) -> Resource:
        if not _matches(obj, "Deployment", ADMINTOOLS_DEPLOYMENT, api_version="apps/v1"):
            return obj

        template = obj["spec"]["template"]
        pod_spec = template["spec"]
        init_container = {
            key: value for key, value in pod_spec["containers"][0].items()
            if key != "livenessProbe"
        }
        init_container["name"] = CREATE_NAMESPACE_CONTAINER
        init_container["command"] = ensure_namespace_command(namespace)

        return {
            **obj,
            "spec": {
                **obj["spec"],
                "template": {
                    **template,
                    "spec": {**pod_spec, "initContainers": [init_container]},
                },
            },
        }

    return transform


def chart_transformation(transform: ResourceTransform) -> Callable[[Resource, pulumi.ResourceOptions], None]:
    """Adapt a pure transform to the in-place callback ``Chart`` expects."""
    def apply(obj: Resource, opts: pulumi.ResourceOptions) -> None:
        result = transform(obj)
        if result is not obj:
            obj.clear()
            obj.update(result)

    return apply
