"""
KernelConfiguration schema.

The typed form of the YAML configuration file.  The loader parses YAML
into these frozen dataclasses; bridges turn them into kernel objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Engine and pool settings.  sqlite_busy_timeout only applies to SQLite."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    sqlite_busy_timeout: float = 30.0


@dataclass(frozen=True)
class EstimationSettings:
    """
    Cost-estimation oracle settings.

    The API key itself never lives in the file; api_key_env names the
    environment variable that holds it.
    """

    base_url: str
    model: str = "gpt-4"
    api_key_env: str = "OPENAI_API_KEY"
    temperature: float = 0.7
    timeout_seconds: float = 30.0
    deadline_seconds: float | None = None
    max_attempts: int = 3
    backoff_seconds: float = 0.5


@dataclass(frozen=True)
class CreditSettings:
    welcome_credits: int = 100
    operation_costs: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KernelConfiguration:
    """Complete runtime configuration; checksum identifies the source file content."""

    config_id: str
    version: int
    database: DatabaseSettings
    estimation: EstimationSettings
    credits: CreditSettings = field(default_factory=CreditSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
