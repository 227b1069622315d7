"""Logging utilities for UMI-QC.

Provides console/file session logging with step records and structured
log output (JSON, YAML).
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import yaml

PathLike = Union[str, Path]


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Generate a timestamped log path from the base log path.

    Example: umi_qc.log -> umi_qc_20251209_080530.log
    """
    log_path = Path(log_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    stem = log_path.stem
    suffix = log_path.suffix or ".log"
    return log_path.parent / f"{stem}_{timestamp}{suffix}"


class ColoredFormatter(logging.Formatter):
    """Formatter with color support for console output."""

    def __init__(self, fmt: str, datefmt: str, colors: dict):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.colors = colors

    def format(self, record):
        levelname = record.levelname
        color = self.colors.get(levelname, self.colors["RESET"])
        reset = self.colors["RESET"]
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{levelname}{reset}"
        return super().format(record)


class SessionLogger:
    """Console and file logging for one QC session.

    Parameters
    ----------
    log_dir : PathLike, optional
        Directory for the log file (console only when None)
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_name : str
        Logger name; child module loggers under it share the handlers
    timestamped : bool
        Add a timestamp to the log file name

    Example
    -------
    >>> session = SessionLogger("out/logs", log_level="INFO")
    >>> session.setup()
    >>> session.log_step_start("metrics", "Computing QC metrics")
    >>> session.log_step_complete("metrics", 1.2)
    """

    COLORS = {
        "DEBUG": "\033[0;36m",  # Cyan
        "INFO": "\033[0;34m",  # Blue
        "WARNING": "\033[1;33m",  # Yellow
        "ERROR": "\033[0;31m",  # Red
        "CRITICAL": "\033[1;31m",  # Bold Red
        "RESET": "\033[0m",
    }

    def __init__(
        self,
        log_dir: Optional[PathLike] = None,
        log_level: str = "INFO",
        log_name: str = "umi_qc",
        timestamped: bool = True,
    ):
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.log_file: Optional[Path] = None
        if self.log_dir is not None:
            base = self.log_dir / "umi_qc.log"
            self.log_file = get_timestamped_log_path(base) if timestamped else base

        self.log_level = getattr(logging, log_level.upper())
        self.logger = logging.getLogger(log_name)
        self.logger.setLevel(self.log_level)

    def setup(self, color: bool = True) -> logging.Logger:
        """Attach file and console handlers, replacing existing ones."""
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(self.log_file, mode="w", encoding="utf-8")
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            self.logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(self.log_level)
        if color:
            console_handler.setFormatter(
                ColoredFormatter(
                    fmt="%(asctime)s - %(levelname)s - %(message)s",
                    datefmt="%H:%M:%S",
                    colors=self.COLORS,
                )
            )
        else:
            console_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(levelname)s - %(message)s", "%H:%M:%S")
            )
        self.logger.addHandler(console_handler)
        self.logger.propagate = False
        return self.logger

    def close(self) -> None:
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def log_step_start(self, step_id: str, description: str) -> None:
        separator = "=" * 60
        self.logger.info(separator)
        self.logger.info(f"Step {step_id}: {description}")
        self.logger.info(separator)

    def log_step_complete(self, step_id: str, duration: float) -> None:
        self.logger.info(f"Step {step_id} completed in {self.format_duration(duration)}")

    def log_step_error(self, step_id: str, error: str) -> None:
        self.logger.error(f"Step {step_id} failed: {error}")

    @staticmethod
    def format_duration(seconds: float) -> str:
        """Format duration in seconds to human-readable string.

        Returns
        -------
        str
            Formatted string (e.g., "45.2s", "1m 23s", "2h 15m")
        """
        if seconds < 60:
            return f"{seconds:.1f}s"
        elif seconds < 3600:
            mins = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{mins}m {secs}s"
        else:
            hours = int(seconds // 3600)
            mins = int((seconds % 3600) // 60)
            return f"{hours}h {mins}m"


def _prepare_log_destination(log_path: PathLike) -> Path:
    """Ensure log destination directory exists."""
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def log_json(log_path: PathLike, record: dict[str, Any]) -> None:
    """Append a JSON line to log_path."""
    path = _prepare_log_destination(log_path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, default=str))
        handle.write("\n")


def log_yaml(
    log_path: Optional[PathLike],
    record: dict[str, Any],
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Append a YAML document to log_path.

    Parameters
    ----------
    log_path : PathLike
        Path to log file.
    record : dict
        Dictionary to serialize as YAML.
    logger : logging.Logger, optional
        If provided, log to this logger instead of file.
    """
    yaml_text = yaml.safe_dump(record, sort_keys=False).rstrip("\n")
    message = f"{yaml_text}\n---"
    if logger is not None:
        logger.info("%s", message)
        return

    path = _prepare_log_destination(log_path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(message)
        handle.write("\n")
