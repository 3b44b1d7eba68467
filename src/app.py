"""Application entry point for the adsentry moderation bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint

import settings as settings_module
from adapters.json_storage import JsonStateStore
from adapters.notification_formatting import ChatNotices
from adapters.telegram_gateway import TelegramChatGateway
from adapters.telegram_updates import BotApiUpdateSource
from client import build_bot_api, build_oracle
from core.backlog import BacklogReconciler
from core.dispatcher import LiveDispatcher
from core.enforcement import EnforcementGateway
from core.errors import ClassificationError, ConfigurationError
from core.membership import MembershipTracker
from core.ports import ChatPort, OraclePort
from core.processor import ModerationProcessor
from core.scoring import ScoringClient
from settings import Settings

NAME = "ADSENTRY"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _configure_logging(config: dict[str, Any], secrets: list[str]) -> None:
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/adsentry.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # httpx logs every request URL at INFO, and Bot API URLs embed the token.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_processor(
    settings: Settings,
    store: JsonStateStore,
    chat: ChatPort,
    oracle: OraclePort,
) -> ModerationProcessor:
    """Wire the decision engine from explicit collaborators."""

    return ModerationProcessor(
        store=store,
        membership=MembershipTracker(store),
        scoring=ScoringClient(oracle, model_label=settings.oracle.model),
        enforcement=EnforcementGateway(chat),
        notices=ChatNotices(),
        config=settings.moderation,
    )


def _install_signal_handlers(source: BotApiUpdateSource) -> None:
    loop = asyncio.get_running_loop()

    def _on_signal(signame: str) -> None:
        LOGGER.info("Received %s. Stopping bot...", signame)
        source.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig.name)
        except NotImplementedError:
            # Windows event loops have no signal handler support; Ctrl+C
            # still raises KeyboardInterrupt there.
            pass


async def _serve(settings: Settings) -> None:
    store = JsonStateStore(
        settings.store.path,
        flush_attempts=settings.store.flush_attempts,
        retry_delay_seconds=settings.store.retry_delay_seconds,
    )
    store.init_db()

    api = build_bot_api(settings)
    oracle = build_oracle(settings)
    try:
        processor = build_processor(settings, store, TelegramChatGateway(api), oracle)
        source = BotApiUpdateSource(api)

        # Backlog replay finishes before polling starts so startup history is
        # handled strictly in order and without chat notices.
        if settings.backlog.enabled:
            await BacklogReconciler(source, processor, settings.backlog).reconcile()

        dispatcher = LiveDispatcher(processor)
        _install_signal_handlers(source)
        LOGGER.info("adsentry is listening for group messages...")

        async for update in source.stream():
            if update.event is not None:
                dispatcher.submit(update.event)

        await dispatcher.drain()
        LOGGER.info("All in-flight events finished")
    finally:
        await api.aclose()
        await oracle.aclose()


async def _score(settings: Settings, text: str) -> int:
    oracle = build_oracle(settings)
    try:
        classification = await ScoringClient(oracle, model_label=settings.oracle.model).classify(text)
    finally:
        await oracle.aclose()
    print(f"score={classification.score} raw={classification.raw_answer!r}")
    return classification.score


def _load(print_banner: bool = True) -> Settings:
    if print_banner:
        _print_banner()
    settings_module.load_environment()
    loaded = settings_module.load_settings()
    _configure_logging(loaded.logging, loaded.secrets)
    return loaded


def _run() -> None:
    loaded = _load()
    LOGGER.info("Starting adsentry")
    asyncio.run(_serve(loaded))


def _score_command(text: str) -> None:
    loaded = _load(print_banner=False)
    try:
        asyncio.run(_score(loaded, text))
    except ClassificationError as exc:
        LOGGER.error("Scoring failed: %s", exc)
        sys.exit(2)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="adsentry")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Replay the backlog, then moderate live messages")
    score_parser = subparsers.add_parser(
        "score",
        help="Score one text with the configured oracle (no chat actions).",
    )
    score_parser.add_argument("text", help="Text to score")

    args = parser.parse_args(argv)
    try:
        if args.command == "score":
            _score_command(args.text)
            return
        _run()
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.ERROR)
        LOGGER.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
