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

"""Exception hierarchy for omes_infra.

None of these errors is recovered locally. Re-running the stack operation is
the retry mechanism, since every resource is declared idempotently by name.
"""


class OmesInfraError(Exception):
    """Base exception for all omes_infra errors."""


class ConfigurationError(OmesInfraError):
    """Raised for malformed or contradictory input.

    This covers:
    - zero or several cluster variants populated
    - a required field missing for the selected variant
    - a TLS certificate supplied without its key, or the reverse
    - an unreadable kubeconfig or TLS file
    """


class UnsupportedSubstrateError(OmesInfraError):
    """Raised when a capability is requested on a substrate that lacks it.

    Self-hosted backend automation exists for local and AWS clusters only.
    """


class ProvisioningError(OmesInfraError):
    """Raised when the Pulumi engine fails to apply the declared resources.

    Network failures, quota limits and authentication failures all surface
    here with the engine's error chained as the cause.
    """


class DependencyNotReadyError(ProvisioningError):
    """Raised when a dependency never reached a ready state during an update."""
