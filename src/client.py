"""Client factories for adsentry.

We explicitly build (and later close) the HTTP-backed clients so it is
obvious when connections are opened and when they end.
"""

from __future__ import annotations

import logging

from adapters.llm_oracle import OpenAICompatibleOracle
from adapters.telegram_bot_api import BotApiClient
from settings import Settings


def build_bot_api(settings: Settings) -> BotApiClient:
    """Create the Bot API client used for updates and chat actions."""

    logging.getLogger(__name__).info("Initializing Telegram Bot API client")
    return BotApiClient(settings.bot_token)


def build_oracle(settings: Settings) -> OpenAICompatibleOracle:
    """Create the scoring oracle client from the configured endpoint."""

    logging.getLogger(__name__).info(
        "Initializing scoring oracle %s (model %s)",
        settings.oracle.api_url,
        settings.oracle.model,
    )
    return OpenAICompatibleOracle(settings.oracle)
