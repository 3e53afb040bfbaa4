"""Logging setup for Document Vault Core.

@public

Vault modules log through Prefect's logger tree: ``get_vault_logger("docvault_core.registry")``
returns the ``prefect.docvault_core.registry`` logger. Setup either applies a
YAML dictConfig file or attaches a console handler to ``prefect.docvault_core``.

Environment variables:
    DOCVAULT_LOGGING_CONFIG: Path to a YAML dictConfig file
    DOCVAULT_LOG_LEVEL: Level for the vault loggers (default INFO)
"""

import logging
import logging.config
import os
from pathlib import Path
from typing import Any

import yaml
from prefect.logging import get_logger

PACKAGE = "docvault_core"
LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"

_configured = False


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a dictConfig mapping from a YAML file.

    Loggers in the file must use the Prefect-prefixed names, e.g.
    ``prefect.docvault_core.storage``.

    Raises:
        ValueError: The file does not contain a mapping.
    """
    with open(path, encoding="utf-8") as f:
        config = yaml.safe_load(f)
    if not isinstance(config, dict):
        raise ValueError(f"Logging config {path} must be a mapping, got {type(config).__name__}")
    return config


def _console_config(level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "standard", "stream": "ext://sys.stdout"},
        },
        "loggers": {
            get_logger(PACKAGE).name: {"level": level, "handlers": ["console"], "propagate": False},
        },
    }


def setup_logging(config_path: Path | None = None, level: str | None = None) -> logging.Logger:
    """Configure the vault loggers and return the package logger.

    @public

    Args:
        config_path: YAML dictConfig file. Defaults to DOCVAULT_LOGGING_CONFIG.
            A path that does not exist falls back to console logging.
        level: Level for the vault loggers. Defaults to DOCVAULT_LOG_LEVEL, then
            INFO. With a config file, only an explicit level overrides it.

    Example:
        >>> setup_logging(level="DEBUG")
        >>> setup_logging(Path("/etc/docvault/logging.yml"))
    """
    global _configured

    if config_path is None and (env_path := os.environ.get("DOCVAULT_LOGGING_CONFIG")):
        config_path = Path(env_path)
    vault_logger = get_logger(PACKAGE)

    if config_path is not None and config_path.is_file():
        logging.config.dictConfig(load_config_file(config_path))
        if level:
            vault_logger.setLevel(level.upper())
    else:
        logging.config.dictConfig(_console_config((level or os.environ.get("DOCVAULT_LOG_LEVEL") or "INFO").upper()))
        if config_path is not None:
            vault_logger.warning(f"Logging config {config_path} not found, using console defaults")

    _configured = True
    return vault_logger


def get_vault_logger(name: str) -> logging.Logger:
    """Logger for a vault module, configuring logging on first use.

    @public

    Example:
        >>> logger = get_vault_logger(__name__)
        >>> logger.info("Blob stored")
    """
    if not _configured:
        setup_logging()
    return get_logger(name)
