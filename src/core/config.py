"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

GRACE_PERIOD = timedelta(days=30)

# Scores strictly above this value are deleted (9 and 10 only).
DELETE_THRESHOLD = 8


@dataclass(frozen=True)
class ModerationConfig:
    """Policy settings consumed by the decision engine."""

    grace_period: timedelta = GRACE_PERIOD
    delete_threshold: int = DELETE_THRESHOLD


@dataclass(frozen=True)
class OracleConfig:
    """Connection settings for the OpenAI-compatible scoring oracle."""

    api_url: str
    api_key: str
    model: str
    max_tokens: int = 16
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class BacklogConfig:
    """Startup backlog replay settings."""

    enabled: bool = True
    limit: int = 20


@dataclass(frozen=True)
class StoreConfig:
    """Durability settings for the state store."""

    path: str
    flush_attempts: int = 3
    retry_delay_seconds: float = 0.2
