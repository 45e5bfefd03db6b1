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

"""Utility functions for file reads, labels, and command checks."""

from __future__ import annotations

from pathlib import Path

import sh

from omes_infra.constants import LABEL_APP_COMPONENT, LABEL_APP_NAME, OMES_APP_NAME
from omes_infra.exceptions import ConfigurationError


def read_text_file(path: Path, what: str) -> str:
    """Read a UTF-8 text file named in the configuration.

    Args:
        path: File to read.
        what: Human-readable description used in the error message.

    Returns:
        The file contents.

    Raises:
        ConfigurationError: If the file cannot be read.
    """
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as err:
        raise ConfigurationError(f"Cannot read {what} at {path}: {err}") from err


def labels_for(component: str) -> dict[str, str]:
    """Standard labels for an omes component.

    Args:
        component: Component name (e.g. ``worker``).

    Returns:
        Label mapping shared by the Service, StatefulSet, and pod template.
    """
    return {
        LABEL_APP_NAME: OMES_APP_NAME,
        LABEL_APP_COMPONENT: component,
    }


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err
