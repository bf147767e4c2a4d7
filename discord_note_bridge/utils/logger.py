"""Logging configuration."""

import logging
import sys

NOTICE_LOGGER = "discord_note_bridge.notice"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the application."""
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # discord.py logs every gateway event at INFO
    logging.getLogger("discord").setLevel(logging.WARNING)
    logging.getLogger("discord.http").setLevel(logging.WARNING)
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)


def log_notice(text: str) -> None:
    """Default transient notification sink: a line on the notice logger."""
    logging.getLogger(NOTICE_LOGGER).info(text)
