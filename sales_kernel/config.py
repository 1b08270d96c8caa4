"""
Kernel configuration (``sales_kernel.config``).

Responsibility
--------------
Holds the handful of tunables the kernel reads at runtime and loads them
from a YAML file.  Environment variables override the database URL so the
same file can be shared between environments.

Example ``sales_kernel.yaml``::

    database_url: sqlite:///sales.db
    default_payment_terms_days: 30
    invoice_numbers_include_year: true
    log_level: INFO

Architecture position
---------------------
**Kernel layer** -- configuration.  Imported by services and scripts.
Imports nothing from services or models.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from sales_kernel.domain.numbering import MAX_SEQUENCE
from sales_kernel.logging_config import get_logger

logger = get_logger("config")

DATABASE_URL_ENV_VARS = ("SALES_KERNEL_DATABASE_URL", "DATABASE_URL")
DEFAULT_DATABASE_URL = "sqlite:///sales_kernel.db"


@dataclass(frozen=True)
class KernelConfig:
    """Runtime settings for the sales kernel."""

    database_url: str = DEFAULT_DATABASE_URL
    default_payment_terms_days: int = 30
    invoice_numbers_include_year: bool = True
    max_sequence: int = MAX_SEQUENCE
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url is required")
        if self.default_payment_terms_days < 0:
            raise ValueError("default_payment_terms_days cannot be negative")
        if not 1 <= self.max_sequence <= MAX_SEQUENCE:
            raise ValueError(f"max_sequence must be between 1 and {MAX_SEQUENCE}")
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL,
        ):
            raise ValueError(f"Unknown log_level: {self.log_level}")

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KernelConfig:
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)


def load_config(path: str | Path | None = None) -> KernelConfig:
    """
    Load configuration from a YAML file and the environment.

    A missing ``path`` yields the defaults.  ``SALES_KERNEL_DATABASE_URL``
    (then ``DATABASE_URL``) overrides ``database_url`` from the file.

    Raises:
        FileNotFoundError: ``path`` was given but does not exist.
        ValueError: The file is not a mapping or holds invalid values.
    """
    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        with open(config_path) as f:
            raw = yaml.safe_load(f)
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValueError(f"Expected a mapping in {config_path}, got {type(raw).__name__}")
        data.update(raw)

    for var in DATABASE_URL_ENV_VARS:
        value = os.environ.get(var)
        if value:
            data["database_url"] = value
            break

    config = KernelConfig.from_dict(data)
    logger.info(
        "config_loaded",
        extra={
            "source": str(path) if path is not None else None,
            "invoice_numbers_include_year": config.invoice_numbers_include_year,
            "default_payment_terms_days": config.default_payment_terms_days,
        },
    )
    return config
