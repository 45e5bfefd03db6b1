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

"""
cli.py - Load-test infrastructure for Temporal with omes.

Subcommands:
    stack   Provision, update, and tear down a stack (up, preview, destroy, kubeconfig)
    config  Check and display the run configuration (validate, show)

Environment Variables:
    - OMES_PROJECT (default: omes-infra)
    - OMES_STACK (default: dev)
    - OMES_WORK_DIR (default: inline project)
    - OMES_CONFIG_FILE (default: omes.yaml)

Examples:
    # Check a config before touching any cloud account
    omes-infra config validate -c omes.yaml

    # Bring a stack up
    omes-infra stack up --stack perf-aws

    # Fetch the cluster credentials
    omes-infra stack kubeconfig --stack perf-aws -o ./kubeconfig

    # Tear it down
    omes-infra stack destroy --stack perf-aws --yes
"""

from __future__ import annotations

import logging
import sys

import typer

from omes_infra import console
from omes_infra.commands import config_cmd, stack_cmd

app = typer.Typer(
    help="Load-test infrastructure for Temporal with omes.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.add_typer(stack_cmd.app, name="stack")
app.add_typer(config_cmd.app, name="config")


def main() -> None:
    """Console-script entry point."""
    try:
        app()
    except Exception as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
