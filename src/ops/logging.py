"""
Logging setup.
"""

from __future__ import annotations

import logging
import os

# Chatty HTTP internals; one debug line per request is too much at 10 Hz.
_NOISY_LOGGERS = ("urllib3", "requests")


def setup_logging(log_path: str, log_level: str) -> None:
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, getattr(logging, log_level)))
