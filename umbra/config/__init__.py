"""
Configuration management for Umbra Ledger.

Handles loading and validation of configuration files.
"""

from umbra.config.settings import (
    HashConfig,
    JournalConfig,
    LedgerConfig,
    LoggingConfig,
    MetricsConfig,
    UmbraConfig,
    VaultSpec,
    VerifierConfig,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "HashConfig",
    "JournalConfig",
    "LedgerConfig",
    "LoggingConfig",
    "MetricsConfig",
    "UmbraConfig",
    "VaultSpec",
    "VerifierConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
