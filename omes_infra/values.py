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

"""Temporal chart values: default layers and the tree merge."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from omes_infra.constants import (
    DEDICATED_LABEL_KEY,
    DEDICATED_LABEL_VALUE,
    DISABLED_COMPONENTS,
    DYNAMIC_CONFIG_UPDATE_WORKFLOW,
    PERSISTENCE_DRIVERS,
    PERSISTENCE_STORES,
    SQL_MAX_CONN_LIFETIME,
    SQL_MAX_CONNS,
)

Values = dict[str, Any]


@dataclass(frozen=True)
class SqlBackend:
    """Connection parameters for the Temporal SQL stores.

    Attributes:
        chart_driver: Chart toggle to enable (``postgresql`` or ``mysql``).
        sql_driver: Temporal SQL plugin (``postgres12`` or ``mysql8``).
        host: Database host; may be an unresolved Pulumi output.
        port: Database port.
        user: Database user.
        password: Database password; may be a secret Pulumi output.
    """

    chart_driver: str
    sql_driver: str
    host: Any
    port: int
    user: str
    password: Any


def _copy_tree(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _copy_tree(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_tree(v) for v in value]
    return value


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Values:
    """Merge *override* onto *base* without modifying either.

    Keys present in both recurse when both values are mappings. Any other
    collision, lists included, takes the override value outright.

    Args:
        base: Default tree.
        override: Tree whose values win on collision.

    Returns:
        A new tree. Leaves are shared, containers are fresh.
    """
    merged = {key: _copy_tree(value) for key, value in base.items()}
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = _copy_tree(value)
    return merged


def driver_toggles(driver: str) -> Values:
    """Enable exactly *driver* among the chart's persistence drivers."""
    return {name: {"enabled": name == driver} for name in PERSISTENCE_DRIVERS}


def base_values() -> Values:
    """Defaults applied on every path.

    PostgreSQL is the enabled driver unless a later layer switches it. Both
    SQL stores get a 20 connection pool with a one hour lifetime, and
    in-place workflow updates are enabled.
    """
    values: Values = {name: {"enabled": False} for name in DISABLED_COMPONENTS}
    values.update(driver_toggles("postgresql"))
    values["server"] = {
        "config": {
            "persistence": {
                store: {
                    "driver": "sql",
                    "sql": {
                        "maxConns": SQL_MAX_CONNS,
                        "maxConnLifetime": SQL_MAX_CONN_LIFETIME,
                    },
                }
                for store in PERSISTENCE_STORES
            },
        },
        "dynamicConfig": {
            DYNAMIC_CONFIG_UPDATE_WORKFLOW: [{"value": True}],
        },
    }
    return values


def persistence_values(backend: SqlBackend) -> Values:
    """Driver toggles and connection settings for both SQL stores.

    Args:
        backend: Connection parameters of the provisioned database.

    Returns:
        Values layer selecting *backend* as the only persistence driver.
    """
    stores = {
        store: {
            "driver": "sql",
            "sql": {
                "driver": backend.sql_driver,
                "host": backend.host,
                "port": backend.port,
                "user": backend.user,
                "password": backend.password,
                "database": database,
            },
        }
        for store, database in PERSISTENCE_STORES.items()
    }
    values = driver_toggles(backend.chart_driver)
    values["server"] = {"config": {"persistence": stores}}
    return values


def dedicated_node_values() -> Values:
    """Pin the Temporal server to nodes carrying the dedicated capacity label."""
    return {
        "server": {
            "affinity": {
                "nodeAffinity": {
                    "requiredDuringSchedulingIgnoredDuringExecution": {
                        "nodeSelectorTerms": [{
                            "matchExpressions": [{
                                "key": DEDICATED_LABEL_KEY,
                                "operator": "In",
                                "values": [DEDICATED_LABEL_VALUE],
                            }],
                        }],
                    },
                },
            },
            "tolerations": [{
                "key": DEDICATED_LABEL_KEY,
                "operator": "Equal",
                "value": DEDICATED_LABEL_VALUE,
                "effect": "NoSchedule",
            }],
        },
    }


def enabled_drivers(values: Mapping[str, Any]) -> list[str]:
    """Persistence drivers whose ``enabled`` flag is true in *values*."""
    return [
        name for name in PERSISTENCE_DRIVERS
        if isinstance(values.get(name), Mapping) and values[name].get("enabled") is True
    ]
