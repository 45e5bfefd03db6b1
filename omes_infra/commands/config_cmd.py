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

"""Config subcommands (validate, show)."""

from __future__ import annotations

from pathlib import Path

import typer

from omes_infra import console
from omes_infra.commands._options import resolve
from omes_infra.config import display_config
from omes_infra.program import preflight

app = typer.Typer(help="Check and display the run configuration.")


@app.command()
def validate(
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML config file (overrides OMES_CONFIG_FILE)"),
) -> None:
    """Validate the config file and every file it references."""
    settings, run_config = resolve(config_file, None, None)
    preflight(run_config)
    console.print(f"[green]✅ {settings.config_file} is valid[/green]")


@app.command()
def show(
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="YAML config file (overrides OMES_CONFIG_FILE)"),
    stack: str | None = typer.Option(None, "--stack", "-s", help="Pulumi stack name"),
    project: str | None = typer.Option(None, "--project", help="Pulumi project name"),
) -> None:
    """Print the resolved configuration without secrets."""
    settings, run_config = resolve(config_file, stack, project)
    display_config(settings, run_config)
