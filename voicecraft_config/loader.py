"""
Configuration Loader (``voicecraft_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into typed
``voicecraft_config.schema`` dataclasses.  The single public entry point
for runtime config is ``voicecraft_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields have no silent defaults.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from voicecraft_config.schema import (
    CreditSettings,
    DatabaseSettings,
    EstimationSettings,
    KernelConfiguration,
    LoggingSettings,
)
from voicecraft_kernel.domain.credits import BillableOperation

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _positive(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{name} must be a positive number, got {value!r}")
    return value


def _non_negative_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    url = data["url"]
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")
    return DatabaseSettings(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=int(_positive("database.pool_size", data.get("pool_size", 20))),
        max_overflow=_non_negative_int("database.max_overflow", data.get("max_overflow", 10)),
        pool_timeout=int(_positive("database.pool_timeout", data.get("pool_timeout", 30))),
        pool_recycle=int(_positive("database.pool_recycle", data.get("pool_recycle", 1800))),
        sqlite_busy_timeout=float(
            _positive("database.sqlite_busy_timeout", data.get("sqlite_busy_timeout", 30.0))
        ),
    )


def parse_estimation(data: dict[str, Any]) -> EstimationSettings:
    base_url = data["base_url"]
    if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
        raise ValueError(f"estimation.base_url must be an http(s) URL, got {base_url!r}")

    max_attempts = data.get("max_attempts", 3)
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int) or max_attempts < 1:
        raise ValueError(f"estimation.max_attempts must be >= 1, got {max_attempts!r}")

    deadline = data.get("deadline_seconds")
    if deadline is not None:
        deadline = float(_positive("estimation.deadline_seconds", deadline))

    backoff = data.get("backoff_seconds", 0.5)
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        raise ValueError(f"estimation.backoff_seconds must be >= 0, got {backoff!r}")

    return EstimationSettings(
        base_url=base_url.rstrip("/"),
        model=str(data.get("model", "gpt-4")),
        api_key_env=str(data.get("api_key_env", "OPENAI_API_KEY")),
        temperature=float(data.get("temperature", 0.7)),
        timeout_seconds=float(_positive("estimation.timeout_seconds", data.get("timeout_seconds", 30.0))),
        deadline_seconds=deadline,
        max_attempts=max_attempts,
        backoff_seconds=float(backoff),
    )


def parse_credits(data: dict[str, Any]) -> CreditSettings:
    costs: dict[str, int] = {}
    for key, value in (data.get("operation_costs") or {}).items():
        try:
            operation = BillableOperation(key)
        except ValueError:
            raise ValueError(f"credits.operation_costs: unknown operation {key!r}") from None
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"credits.operation_costs.{key} must be a positive integer, got {value!r}")
        costs[operation.value] = value

    return CreditSettings(
        welcome_credits=_non_negative_int("credits.welcome_credits", data.get("welcome_credits", 100)),
        operation_costs=costs,
    )


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {', '.join(_LOG_LEVELS)}, got {level!r}")
    return LoggingSettings(level=level)


def parse_configuration(data: dict[str, Any]) -> KernelConfiguration:
    """Parse a whole configuration document."""
    return KernelConfiguration(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        database=parse_database(data["database"]),
        estimation=parse_estimation(data["estimation"]),
        credits=parse_credits(data.get("credits") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums regardless of
    key order in the source file.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
