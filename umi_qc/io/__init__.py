"""I/O utilities for UMI-QC.

Provides logging and table output helpers.
"""

from .logging import (
    SessionLogger,
    get_timestamped_log_path,
    log_json,
    log_yaml,
)
from .tables import ensure_output_dir, write_dataframe

__all__ = [
    # Logging
    "SessionLogger",
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
    # Tables
    "ensure_output_dir",
    "write_dataframe",
]
