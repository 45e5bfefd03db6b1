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

"""Stack subcommands (up, preview, destroy, kubeconfig)."""

from __future__ import annotations

from pathlib import Path

import typer

from omes_infra import orchestrator
from omes_infra.commands._options import resolve
from omes_infra.config import display_config
from omes_infra.constants import KUBECONFIG_OUTPUT

app = typer.Typer(help="Provision, update, and tear down a load-test stack.")

_CONFIG_HELP = "YAML config file (overrides OMES_CONFIG_FILE)"
_STACK_HELP = "Pulumi stack name (overrides OMES_STACK)"
_PROJECT_HELP = "Pulumi project name (overrides OMES_PROJECT)"


@app.command()
def up(
    config_file: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    stack: str | None = typer.Option(None, "--stack", "-s", help=_STACK_HELP),
    project: str | None = typer.Option(None, "--project", help=_PROJECT_HELP),
) -> None:
    """Create or update the cluster, Temporal, and the omes pools."""
    settings, run_config = resolve(config_file, stack, project)
    display_config(settings, run_config)
    orchestrator.up(settings, run_config)


@app.command()
def preview(
    config_file: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    stack: str | None = typer.Option(None, "--stack", "-s", help=_STACK_HELP),
    project: str | None = typer.Option(None, "--project", help=_PROJECT_HELP),
) -> None:
    """Show what an update would change."""
    settings, run_config = resolve(config_file, stack, project)
    display_config(settings, run_config)
    orchestrator.preview(settings, run_config)


@app.command()
def destroy(
    config_file: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    stack: str | None = typer.Option(None, "--stack", "-s", help=_STACK_HELP),
    project: str | None = typer.Option(None, "--project", help=_PROJECT_HELP),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Tear down every resource in the stack."""
    settings, run_config = resolve(config_file, stack, project)
    if not yes:
        typer.confirm(f"Destroy every resource in stack '{settings.stack}'?", abort=True)
    orchestrator.destroy(settings, run_config)


@app.command()
def kubeconfig(
    output: Path = typer.Option(
        Path(KUBECONFIG_OUTPUT), "--output", "-o", help="Where to write the kubeconfig"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    stack: str | None = typer.Option(None, "--stack", "-s", help=_STACK_HELP),
    project: str | None = typer.Option(None, "--project", help=_PROJECT_HELP),
) -> None:
    """Write the cluster's kubeconfig from the stack outputs."""
    settings, run_config = resolve(config_file, stack, project)
    orchestrator.kubeconfig(settings, run_config, output)
