"""Logging setup for processes that embed watchsync."""

import logging
import sys

import colorlog


def setup_logging(log_level: int) -> None:
    formatter = colorlog.ColoredFormatter(
        "%(cyan)s%(asctime)s%(reset)s %(log_color)s%(levelname)-8s%(reset)s %(light_purple)s%(name)s:%(reset)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        log_colors={
            "DEBUG": "purple",
            "INFO": "blue",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "red,bg_white",
        },
    )

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    # Calling twice must not print every record twice
    for existing in list(root.handlers):
        if isinstance(getattr(existing, "formatter", None), colorlog.ColoredFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)
