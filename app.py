#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Application entrypoint for micro.log.

This file is intentionally minimal. It configures logging and boots the
Textual UI app.
"""
from __future__ import annotations

import asyncio
import os

from loguru import logger

from microlog.config import config_dir
from microlog.ui import MicrologApp


def setup_logging(level: str = "INFO") -> None:
    """Send logs to a rotating file; the terminal belongs to the UI."""
    logger.remove()
    logger.add(
        config_dir() / "microlog.log",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} [{level.name}] {name}: {message}",
        rotation="10 MB",
        retention="7 days",
    )


def main() -> None:
    """Run the Textual application."""
    setup_logging(os.environ.get("MICROLOG_LOG_LEVEL", "INFO"))
    asyncio.run(MicrologApp().run_async())


if __name__ == "__main__":
    main()
