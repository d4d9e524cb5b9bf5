"""
Logging utilities for foundry.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from foundry.config import FoundryConfig


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "pretty",
    console_output: bool = True,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging for the foundry package.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (human-readable)
        console_output: Also log to console
        log_file: Optional path to a log file

    Returns:
        Configured logger
    """
    logger = logging.getLogger("foundry")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        if log_format == "structured":
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        logger.addHandler(file_handler)

    if console_output:
        if log_format == "pretty":
            console_handler = RichHandler(rich_tracebacks=True, show_time=False)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(StructuredFormatter())
        logger.addHandler(console_handler)

    return logger


def setup_logging_from_config(config: FoundryConfig, console_output: bool = True) -> logging.Logger:
    """Set up logging from a FoundryConfig."""
    return setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        console_output=console_output,
        log_file=Path(config.log_file).expanduser() if config.log_file else None,
    )


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Run-scoped extras passed through `extra=`
        for key in ("run_id", "node", "step", "event"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)
