"""
Logging Configuration

Centralized logging setup for the merge gate.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "merge_gate"


class GateFormatter(logging.Formatter):
    """Formatter with level colors: [TIME] LEVEL [module] message"""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, stream=None):
        super().__init__()
        stream = stream or sys.stderr
        self.use_colors = use_colors and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level:8}{self.RESET}"
        else:
            level = f"{level:8}"

        # Drop the package prefix: [orchestrator] rather than [merge_gate.orchestrator]
        name = record.name
        if name.startswith(ROOT_LOGGER + "."):
            name = name[len(ROOT_LOGGER) + 1:]

        parts = [f"[{timestamp}]", level, f"[{name}]", record.getMessage()]

        if record.exc_info:
            parts.append("\n" + self.formatException(record.exc_info))

        return " ".join(parts)


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    use_colors: bool = True,
) -> None:
    """
    Configure logging for the merge gate.

    Logs go to stderr so stdout stays free for the verdict report.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); defaults to $GATE_LOG_LEVEL or INFO
        log_file: Optional file path for log output
        use_colors: Enable colored console output
    """
    level = level or os.getenv("GATE_LOG_LEVEL", "INFO")

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(GateFormatter(use_colors=use_colors, stream=sys.stderr))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(GateFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    # Per-request noise from the HTTP client
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    root_logger.debug("Logging configured")


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package root"""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
