"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the only way callers obtain configuration.
    It loads a YAML set (``sets/default.yaml`` unless a path is given),
    validates it and returns a frozen ``LedgerConfig``.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel MUST NEVER import from
    ``ledger_config``; services receive the values they need (account
    codes, default costing policy, retry bound) as plain arguments.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- validation failed; the message lists every error.

Audit relevance:
    Every successful load emits ``ledger_config_loaded`` with config_id,
    version and checksum, tying postings to the configuration in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_config_file
from ledger_config.schema import (
    AccountCodeMap,
    AccountDef,
    CostingSettings,
    DatabaseSettings,
    ItemDef,
    LedgerConfig,
    RetrySettings,
)
from ledger_config.validator import ConfigValidationResult, validate_configuration

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """
    Load and validate the configuration.

    Args:
        path: YAML file to load.  Defaults to ledger_config/sets/default.yaml.

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: validation errors.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config_file(config_path)

    validation = validate_configuration(config)
    for warning in validation.warnings:
        _logger.warning("ledger_config_warning", extra={"warning": warning})
    if not validation.is_valid:
        raise ValueError(
            f"Configuration {config.config_id} is invalid: " + "; ".join(validation.errors)
        )

    _logger.info(
        "ledger_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "account_count": len(config.accounts),
            "default_costing_method": config.costing.default_method,
        },
    )
    return config


__all__ = [
    "AccountCodeMap",
    "AccountDef",
    "ConfigValidationResult",
    "CostingSettings",
    "DatabaseSettings",
    "DEFAULT_CONFIG_PATH",
    "ItemDef",
    "LedgerConfig",
    "RetrySettings",
    "get_active_config",
    "validate_configuration",
]
