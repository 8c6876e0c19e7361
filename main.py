#!/usr/bin/env python3
"""
Production entry point for NoteFerry.

Serves the HTTP API with configuration taken from NOTEFERRY_CONFIG (a YAML
file), a config file in the working directory, or NOTEFERRY_* environment
variables.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import structlog
import uvicorn
from pydantic import ValidationError

from noteferry.config import Config, find_config_file
from noteferry.observability import configure_logging
from noteferry.web.main import create_app

logger = structlog.get_logger(__name__)


def load_config() -> Config:
    explicit = os.getenv("NOTEFERRY_CONFIG")
    path = Path(explicit) if explicit else find_config_file()
    return Config.from_yaml(path) if path else Config()


def main() -> int:
    try:
        config = load_config()
    except (ValidationError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config.monitoring)
    logger.info("Starting NoteFerry", host=config.server.host, port=config.server.port)
    uvicorn.run(
        create_app(config=config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.monitoring.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
