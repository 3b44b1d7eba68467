"""Runtime configuration for adsentry.

Secrets and endpoints come from the environment (``.env.local`` first, then
``.env``). Optional tuning for logging, backlog replay and moderation lives
in a JSON file so it can be edited without touching Python.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from core.config import BacklogConfig, ModerationConfig, OracleConfig, StoreConfig
from core.errors import ConfigurationError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

LOCAL_ENV_FILE = ".env.local"

DEFAULT_LLM_API_URL = "https://api.siliconflow.cn/v1"
DEFAULT_LLM_MODEL = "Qwen/Qwen3-8B"
DEFAULT_DATABASE_PATH = "./data/db.json"
DEFAULT_CONFIG_PATH = "config.json"


@dataclass(frozen=True)
class Settings:
    """Everything the app layer needs to wire the pipeline."""

    bot_token: str
    oracle: OracleConfig
    store: StoreConfig
    moderation: ModerationConfig = field(default_factory=ModerationConfig)
    backlog: BacklogConfig = field(default_factory=BacklogConfig)
    logging: dict[str, Any] = field(default_factory=dict)

    @property
    def secrets(self) -> list[str]:
        """Values that must never appear in log output."""

        return [value for value in (self.bot_token, self.oracle.api_key) if value]


def load_environment() -> None:
    """Load ``.env.local`` if present, then ``.env``; real env vars win."""

    if os.path.exists(LOCAL_ENV_FILE):
        load_dotenv(LOCAL_ENV_FILE)
    load_dotenv()


def _load_json_config(path: str) -> dict:
    """Load the optional JSON config file; a missing file means defaults."""

    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return data


def _section(config: Mapping[str, Any], name: str) -> dict:
    value = config.get(name, {})
    if not isinstance(value, dict):
        raise ConfigurationError(f"Config section '{name}' must be an object")
    return value


def _positive_int(section: Mapping[str, Any], key: str, default: int) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ConfigurationError(f"{key} must be at least 1, got {value}")
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment and the optional JSON config.

    Raises ConfigurationError when required credentials are missing.
    """

    env = os.environ if environ is None else environ

    bot_token = env.get("TELEGRAM_BOT_TOKEN")
    if not bot_token:
        raise ConfigurationError("Missing TELEGRAM_BOT_TOKEN in environment")
    api_key = env.get("LLM_API_KEY")
    if not api_key:
        raise ConfigurationError("Missing LLM_API_KEY in environment")

    config_path = env.get("CONFIG_PATH") or os.path.join(PROJECT_ROOT, DEFAULT_CONFIG_PATH)
    config = _load_json_config(config_path)

    moderation_cfg = _section(config, "moderation")
    backlog_cfg = _section(config, "backlog")

    database_path = os.path.abspath(env.get("DATABASE_PATH") or DEFAULT_DATABASE_PATH)

    return Settings(
        bot_token=bot_token,
        oracle=OracleConfig(
            api_url=env.get("LLM_API_URL") or DEFAULT_LLM_API_URL,
            api_key=api_key,
            model=env.get("LLM_MODEL") or DEFAULT_LLM_MODEL,
        ),
        store=StoreConfig(
            path=database_path,
            flush_attempts=_positive_int(moderation_cfg, "store_flush_attempts", 3),
        ),
        moderation=ModerationConfig(
            grace_period=timedelta(days=_positive_int(moderation_cfg, "grace_period_days", 30)),
        ),
        backlog=BacklogConfig(
            enabled=bool(backlog_cfg.get("enabled", True)),
            limit=_positive_int(backlog_cfg, "limit", 20),
        ),
        logging=_section(config, "logging"),
    )
