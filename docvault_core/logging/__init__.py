"""Logging infrastructure for Document Vault Core.

@public

Prefect-integrated logging configured from YAML or console defaults.

Example:
    >>> from docvault_core.logging import get_vault_logger
    >>>
    >>> logger = get_vault_logger(__name__)
    >>> logger.info("Upload started")

Note:
    Never call logging.getLogger() directly inside the package. Always use
    get_vault_logger() so configuration is applied before first use.
"""

from .logging_config import get_vault_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_vault_logger",
]
