"""
Configuration management for Umbra Ledger.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from umbra.exceptions import InvalidConfigurationError
from umbra.logging_config import get_logger

logger = get_logger(__name__)

MIN_TREE_DEPTH = 1
MAX_TREE_DEPTH = 32


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${UMBRA_JOURNAL}" -> value of UMBRA_JOURNAL env var
        "${UMBRA_TREE_DEPTH:20}" -> value of UMBRA_TREE_DEPTH or "20" if not set
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class VaultSpec:
    """A vault to create at ledger startup."""

    asset_id: str
    depth: Optional[int] = None
    root_history_size: Optional[int] = None


@dataclass
class LedgerConfig:
    """Commitment tree and root window configuration."""

    tree_depth: int = 20
    root_history_size: int = 30
    vaults: List[VaultSpec] = field(default_factory=list)


@dataclass
class HashConfig:
    """Field hash configuration."""

    backend: str = "poseidon"


@dataclass
class VerifierConfig:
    """Withdrawal proof verifier configuration."""

    backend: str = "attestation"
    public_key_path: str = ""  # PEM public key of the trusted proving service


@dataclass
class JournalConfig:
    """Event journal configuration."""

    enabled: bool = False
    path: str = ""
    fsync: bool = True
    max_retries: int = 3


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    json_format: bool = True


@dataclass
class MetricsConfig:
    """Prometheus metrics configuration."""

    enabled: bool = True


@dataclass
class UmbraConfig:
    """Main Umbra Ledger configuration."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    hash: HashConfig = field(default_factory=HashConfig)
    verifier: VerifierConfig = field(default_factory=VerifierConfig)
    journal: JournalConfig = field(default_factory=JournalConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.umbra/config.yaml")


def get_default_config() -> UmbraConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        UmbraConfig: Default configuration object
    """
    home_dir = os.path.expanduser("~/.umbra")

    journal = JournalConfig(
        enabled=False,
        path=os.path.join(home_dir, "events.jsonl"),
        fsync=True,
        max_retries=3,
    )

    return UmbraConfig(journal=journal)


def load_config(config_path: Optional[str] = None) -> UmbraConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        UmbraConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(str(config_path))

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping at top level"
        )

    config_data = _expand_env_vars(config_data)
    logger.debug("Expanded environment variables in configuration")

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
        logger.info(f"Successfully loaded and validated configuration from {config_path}")
        return config
    except (InvalidConfigurationError, TypeError, ValueError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        ) from e


def _as_bool(value: Any) -> bool:
    # Env-expanded values arrive as strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _as_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _build_vault_specs(vaults_data: Any) -> List[VaultSpec]:
    """
    Parse the ledger.vaults list.

    Entries are either bare asset ids or mappings with asset_id and optional
    depth / root_history_size overrides.
    """
    if not isinstance(vaults_data, list):
        raise InvalidConfigurationError("ledger.vaults must be a list")

    specs = []
    for entry in vaults_data:
        if isinstance(entry, str):
            specs.append(VaultSpec(asset_id=entry))
        elif isinstance(entry, dict):
            if 'asset_id' not in entry:
                raise InvalidConfigurationError("Vault entry is missing 'asset_id'")
            specs.append(VaultSpec(
                asset_id=str(entry['asset_id']),
                depth=_as_optional_int(entry.get('depth')),
                root_history_size=_as_optional_int(entry.get('root_history_size')),
            ))
        else:
            raise InvalidConfigurationError(f"Invalid vault entry: {entry!r}")
    return specs


def _build_config_from_dict(config_data: Dict[str, Any]) -> UmbraConfig:
    """
    Build UmbraConfig from dictionary loaded from YAML.

    Merges user configuration with defaults.

    Args:
        config_data: Dictionary loaded from YAML file

    Returns:
        UmbraConfig: Configuration object
    """
    default_config = get_default_config()

    ledger_data = config_data.get('ledger') or {}
    ledger = LedgerConfig(
        tree_depth=int(ledger_data.get('tree_depth', default_config.ledger.tree_depth)),
        root_history_size=int(
            ledger_data.get('root_history_size', default_config.ledger.root_history_size)
        ),
        vaults=_build_vault_specs(ledger_data.get('vaults', [])),
    )

    hash_data = config_data.get('hash') or {}
    hash_config = HashConfig(
        backend=hash_data.get('backend', default_config.hash.backend),
    )

    verifier_data = config_data.get('verifier') or {}
    verifier = VerifierConfig(
        backend=verifier_data.get('backend', default_config.verifier.backend),
        public_key_path=os.path.expanduser(
            verifier_data.get('public_key_path', default_config.verifier.public_key_path)
        ),
    )

    journal_data = config_data.get('journal') or {}
    journal = JournalConfig(
        enabled=_as_bool(journal_data.get('enabled', default_config.journal.enabled)),
        path=os.path.expanduser(journal_data.get('path', default_config.journal.path)),
        fsync=_as_bool(journal_data.get('fsync', default_config.journal.fsync)),
        max_retries=int(journal_data.get('max_retries', default_config.journal.max_retries)),
    )

    logging_data = config_data.get('logging') or {}
    logging = LoggingConfig(
        level=logging_data.get('level', default_config.logging.level),
        file=os.path.expanduser(logging_data.get('file', default_config.logging.file)),
        json_format=_as_bool(
            logging_data.get('json_format', default_config.logging.json_format)
        ),
    )

    metrics_data = config_data.get('metrics') or {}
    metrics = MetricsConfig(
        enabled=_as_bool(metrics_data.get('enabled', default_config.metrics.enabled)),
    )

    return UmbraConfig(
        ledger=ledger,
        hash=hash_config,
        verifier=verifier,
        journal=journal,
        logging=logging,
        metrics=metrics,
    )


def _check_depth(depth: int, name: str) -> None:
    if not MIN_TREE_DEPTH <= depth <= MAX_TREE_DEPTH:
        raise InvalidConfigurationError(
            f"{name} must be between {MIN_TREE_DEPTH} and {MAX_TREE_DEPTH}, got {depth}"
        )


def _validate_config(config: UmbraConfig) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    _check_depth(config.ledger.tree_depth, "tree_depth")

    if config.ledger.root_history_size < 1:
        raise InvalidConfigurationError(
            f"root_history_size must be at least 1, got {config.ledger.root_history_size}"
        )

    seen = set()
    for spec in config.ledger.vaults:
        if not spec.asset_id:
            raise InvalidConfigurationError("Vault asset_id cannot be empty")
        if spec.asset_id in seen:
            raise InvalidConfigurationError(f"Duplicate vault asset_id '{spec.asset_id}'")
        seen.add(spec.asset_id)
        if spec.depth is not None:
            _check_depth(spec.depth, f"depth of vault '{spec.asset_id}'")
        if spec.root_history_size is not None and spec.root_history_size < 1:
            raise InvalidConfigurationError(
                f"root_history_size of vault '{spec.asset_id}' must be at least 1, "
                f"got {spec.root_history_size}"
            )

    # Import here to keep settings free of hashing imports at module load
    from umbra.core.hashing import HASH_BACKENDS
    if config.hash.backend not in HASH_BACKENDS:
        raise InvalidConfigurationError(
            f"hash backend must be one of {sorted(HASH_BACKENDS)}, got '{config.hash.backend}'"
        )

    valid_verifiers = ["attestation"]
    if config.verifier.backend not in valid_verifiers:
        raise InvalidConfigurationError(
            f"verifier backend must be one of {valid_verifiers}, "
            f"got '{config.verifier.backend}'"
        )

    if config.journal.enabled and not config.journal.path:
        raise InvalidConfigurationError("journal path cannot be empty when journal is enabled")

    if config.journal.max_retries < 1:
        raise InvalidConfigurationError(
            f"journal max_retries must be at least 1, got {config.journal.max_retries}"
        )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.logging.level.upper() not in valid_log_levels:
        raise InvalidConfigurationError(
            f"logging level must be one of {valid_log_levels}, "
            f"got '{config.logging.level}'"
        )
