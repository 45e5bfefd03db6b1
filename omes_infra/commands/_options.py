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

"""Shared option handling for the command groups."""

from __future__ import annotations

from pathlib import Path

from omes_infra.config import RunConfig, RunSettings, load_run_config


def resolve(
    config_file: Path | None,
    stack: str | None,
    project: str | None,
) -> tuple[RunSettings, RunConfig]:
    """Apply CLI overrides on top of OMES_* settings and load the config file.

    Args:
        config_file: Overrides ``OMES_CONFIG_FILE`` when set.
        stack: Overrides ``OMES_STACK`` when set.
        project: Overrides ``OMES_PROJECT`` when set.

    Returns:
        The resolved settings and the validated run configuration.
    """
    settings = RunSettings()
    overrides = {
        key: value
        for key, value in (("config_file", config_file), ("stack", stack), ("project", project))
        if value is not None
    }
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings, load_run_config(settings.config_file)
