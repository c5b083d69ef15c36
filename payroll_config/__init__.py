"""
Payroll configuration (``payroll_config``).

Responsibility
--------------
Single runtime entry point for configuration: ``get_active_config()``.
Services receive the returned ``PayrollConfig`` by injection and never read
files or environment variables themselves.

Resolution order
----------------
1. An explicit ``config_path`` argument.
2. The ``PAYROLL_CONFIG_PATH`` environment variable.
3. Built-in defaults (the rates in ``payroll_engines.statutory``).

Audit relevance
---------------
A ``PAYROLL_CONFIG_TRACE`` log record with the configuration checksum is
emitted on every call.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from payroll_config.loader import compute_checksum, config_to_dict, load_config, with_checksum
from payroll_config.schema import PayrollConfig

__all__ = [
    "CONFIG_PATH_ENV_VAR",
    "PayrollConfig",
    "compute_checksum",
    "config_to_dict",
    "default_config",
    "get_active_config",
    "load_config",
]

_logger = logging.getLogger("payroll_kernel.config")

CONFIG_PATH_ENV_VAR = "PAYROLL_CONFIG_PATH"


def default_config() -> PayrollConfig:
    """Built-in configuration with its checksum populated."""
    return with_checksum(PayrollConfig())


def get_active_config(config_path: Path | str | None = None) -> PayrollConfig:
    """The ONLY public configuration entrypoint.

    Raises:
        FileNotFoundError: configured path does not exist.
        ValueError: configuration fails validation.
    """
    path = config_path or os.environ.get(CONFIG_PATH_ENV_VAR)
    if path:
        config = load_config(Path(path))
        source = str(path)
    else:
        config = default_config()
        source = "defaults"

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "config_source": source,
            "checksum": config.checksum,
            "bulk_max_workers": config.bulk_max_workers,
            "processing_deadline_day": config.processing_deadline_day,
        },
    )
    return config
