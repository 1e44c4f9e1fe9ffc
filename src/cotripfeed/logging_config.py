from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any

import yaml

from cotripfeed.settings import project_root


def configure_logging(logging_config_path: str | Path | None = None, verbose: bool = False) -> None:
    root = project_root()
    candidate = logging_config_path or os.getenv(
        "COTRIPFEED_LOGGING_CONFIG", "configs/logging.yaml"
    )
    path = Path(candidate)
    if not path.is_absolute():
        path = root / path
    if path.exists():
        config: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    else:
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": "DEBUG",
                    "formatter": "standard",
                    "stream": "ext://sys.stderr",
                }
            },
            # httpx logs full request URLs, and the CoTrip key is a query parameter.
            "loggers": {"httpx": {"level": "WARNING"}},
            "root": {"level": "INFO", "handlers": ["console"]},
        }
    logging.config.dictConfig(config)

    # The verbose layer flag only changes what gets logged, never the data.
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
