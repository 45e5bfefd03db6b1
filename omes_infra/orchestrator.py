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

"""Stack operations driven through the Pulumi Automation API."""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pulumi import automation as auto
from rich.panel import Panel

from omes_infra import console, logger
from omes_infra.config import RunConfig, RunSettings
from omes_infra.constants import KUBECONFIG_OUTPUT, NOT_READY_MARKERS
from omes_infra.exceptions import DependencyNotReadyError, ProvisioningError
from omes_infra.program import build, preflight
from omes_infra.utils import require_command

# ============================================================================
# Internal helpers
# ============================================================================


def _echo(line: str) -> None:
    console.print(line.rstrip("\n"), markup=False, highlight=False)


def _summarize(changes: dict | None) -> str:
    """Render an engine change summary such as ``create=3, same=12``."""
    if not changes:
        return "no changes"
    return ", ".join(f"{getattr(op, 'value', op)}={count}" for op, count in changes.items())


@contextmanager
def _engine_errors(operation: str, stack_name: str) -> Iterator[None]:
    """Translate engine failures into ProvisioningError or DependencyNotReadyError.

    Args:
        operation: Operation name used in the error message.
        stack_name: Stack the operation ran against.

    Raises:
        DependencyNotReadyError: If the engine reports a readiness timeout.
        ProvisioningError: For every other engine failure.
    """
    try:
        yield
    except auto.CommandError as err:
        message = str(err)
        if any(marker in message.lower() for marker in NOT_READY_MARKERS):
            raise DependencyNotReadyError(
                f"{operation} of stack '{stack_name}' failed: a dependency never became ready"
            ) from err
        raise ProvisioningError(f"{operation} of stack '{stack_name}' failed: {message.strip()}") from err


def _select_stack(settings: RunSettings, run_config: RunConfig) -> auto.Stack:
    """Create or select the stack and apply the provider configuration.

    Args:
        settings: Project, stack, and workspace location.
        run_config: Validated run configuration.

    Returns:
        The stack, bound to the inline program for *run_config*.
    """
    opts = auto.LocalWorkspaceOptions(work_dir=str(settings.work_dir)) if settings.work_dir else None
    with _engine_errors("select", settings.stack):
        stack = auto.create_or_select_stack(
            stack_name=settings.stack,
            project_name=settings.project,
            program=build(run_config, settings.stack),
            opts=opts,
        )
        if run_config.stack_config:
            stack.set_all_config({
                key: auto.ConfigValue(value=value) for key, value in run_config.stack_config.items()
            })
    logger.debug("Selected stack %s/%s", settings.project, settings.stack)
    return stack


def _prepare(settings: RunSettings, run_config: RunConfig) -> auto.Stack:
    require_command("pulumi")
    preflight(run_config)
    return _select_stack(settings, run_config)


# ============================================================================
# Public API
# ============================================================================


def up(settings: RunSettings, run_config: RunConfig) -> auto.UpResult:
    """Create or update every resource of the run.

    Args:
        settings: Project, stack, and workspace location.
        run_config: Validated run configuration.

    Returns:
        The engine's update result.

    Raises:
        ConfigurationError: If preflight checks fail.
        UnsupportedSubstrateError: If self-hosting is requested on GKE or AKS.
        ProvisioningError: If the update fails.
    """
    stack = _prepare(settings, run_config)
    console.print(Panel.fit(f"Updating stack '{settings.stack}'", style="bold blue"))
    with _engine_errors("update", settings.stack):
        result = stack.up(on_output=_echo)
    changes = _summarize(result.summary.resource_changes)
    console.print(f"[green]✅ Stack '{settings.stack}' is up to date ({changes})[/green]")
    return result


def preview(settings: RunSettings, run_config: RunConfig) -> auto.PreviewResult:
    """Show the changes an update would make without applying them."""
    stack = _prepare(settings, run_config)
    console.print(Panel.fit(f"Previewing stack '{settings.stack}'", style="bold blue"))
    with _engine_errors("preview", settings.stack):
        result = stack.preview(on_output=_echo)
    console.print(f"[green]✅ Preview complete ({_summarize(result.change_summary)})[/green]")
    return result


def destroy(settings: RunSettings, run_config: RunConfig) -> None:
    """Tear down every resource in the stack."""
    require_command("pulumi")
    stack = _select_stack(settings, run_config)
    console.print(Panel.fit(f"Destroying stack '{settings.stack}'", style="bold blue"))
    with _engine_errors("destroy", settings.stack):
        stack.destroy(on_output=_echo)
    console.print(f"[green]✅ Stack '{settings.stack}' destroyed[/green]")


def kubeconfig(settings: RunSettings, run_config: RunConfig, path: Path) -> Path:
    """Write the stack's exported kubeconfig to *path* with owner-only access.

    Args:
        settings: Project, stack, and workspace location.
        run_config: Validated run configuration.
        path: Destination file.

    Returns:
        The written path.

    Raises:
        ProvisioningError: If the stack has not exported a kubeconfig yet.
    """
    require_command("pulumi")
    stack = _select_stack(settings, run_config)
    with _engine_errors("outputs", settings.stack):
        outputs = stack.outputs()
    if KUBECONFIG_OUTPUT not in outputs:
        raise ProvisioningError(f"Stack '{settings.stack}' has no kubeconfig output; run 'stack up' first")

    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    # O_CREAT ignores the mode when the file already exists
    os.fchmod(fd, 0o600)
    with os.fdopen(fd, "w") as handle:
        handle.write(outputs[KUBECONFIG_OUTPUT].value)
    console.print(f"[green]  ✓ Wrote kubeconfig to {path}[/green]")
    return path
