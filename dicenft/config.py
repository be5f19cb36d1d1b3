"""
Configuration

Configuration sources (in order of precedence):
    1. Environment variables (DICENFT_*)
    2. Runtime overrides (ConfigManager.set)
    3. Config files (./dicenft.yaml, ./config/dicenft.yaml, ~/.dicenft/config.yaml)
    4. Default values

Addresses in configuration are base64 canonical addresses, the same form
they take in stored token documents.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

from dicenft.core import load_yaml
from dicenft.errors import ConfigError, ConfigValidationError, DecodeError
from dicenft.primitives import CanonicalAddr

T = TypeVar("T")


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding,
    validation, and change callbacks.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)
    _callbacks: List[Callable[[T, T], None]] = field(default_factory=list, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self._coerce(os.environ[self.env_var])
        return self._value if self._value is not None else self.default

    def set(self, value: T) -> None:
        """Set the value with validation."""
        if self.validator and not self.validator(value):
            raise ConfigValidationError(f"Invalid value for config: {value}")

        old_value = self._value
        self._value = value

        for callback in self._callbacks:
            callback(old_value, value)

    def reset(self) -> None:
        self._value = None

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            return int(value)  # type: ignore
        elif target_type == list:
            return [v.strip() for v in value.split(",") if v.strip()]  # type: ignore
        else:
            return value  # type: ignore

    def on_change(self, callback: Callable[[T, T], None]) -> None:
        """Register a change callback."""
        self._callbacks.append(callback)


def _valid_addresses(values: List[str]) -> bool:
    try:
        for v in values:
            CanonicalAddr.from_base64(v)
    except DecodeError:
        return False
    return True


@dataclass
class PermissionConfig:
    """Limits on permission grants."""
    max_grantees: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=64,
        env_var="DICENFT_PERMISSIONS_MAX_GRANTEES",
        description="Maximum distinct grantees per token",
        validator=lambda x: x > 0,
    ))


@dataclass
class CollateralConfig:
    """Collateral lifecycle policy."""
    administrators: ConfigValue[list] = field(default_factory=lambda: ConfigValue(
        default=[],
        env_var="DICENFT_COLLATERAL_ADMINISTRATORS",
        description="Addresses (base64) allowed to uncollateralise any token besides its owner",
        validator=_valid_addresses,
    ))
    require_payment: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="DICENFT_COLLATERAL_REQUIRE_PAYMENT",
        description="Reject accept/repay calls that do not state the amount paid",
    ))

    def administrator_addresses(self) -> List[CanonicalAddr]:
        return [CanonicalAddr.from_base64(v) for v in self.administrators.get()]


@dataclass
class ObservabilityConfig:
    """Logging configuration."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="DICENFT_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="json",
        env_var="DICENFT_LOG_FORMAT",
        description="Log format (json, text)",
        validator=lambda x: x in ("json", "text"),
    ))
    audit_enabled: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="DICENFT_AUDIT_ENABLED",
        description="Write ownership and collateral events to the audit trail",
    ))


@dataclass
class DiceNftConfig:
    """Root configuration."""
    permissions: PermissionConfig = field(default_factory=PermissionConfig)
    collateral: CollateralConfig = field(default_factory=CollateralConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        def extract_values(obj: Any) -> Any:
            if isinstance(obj, ConfigValue):
                return obj.get()
            elif hasattr(obj, "__dataclass_fields__"):
                return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
            return obj

        return extract_values(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton that manages configuration lifecycle.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = DiceNftConfig()
        self._config_paths: List[Path] = []
        self._initialized = True

    @property
    def config(self) -> DiceNftConfig:
        return self._config

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = load_yaml(path)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration file must hold a mapping: {path}")
            self._apply_dict(data)
        if path not in self._config_paths:
            self._config_paths.append(path)

    def load_defaults(self) -> List[Path]:
        """Load the default configuration files that exist. Returns the files loaded."""
        default_paths = [
            Path("dicenft.yaml"),
            Path("config/dicenft.yaml"),
            Path.home() / ".dicenft" / "config.yaml",
        ]

        loaded = []
        for path in default_paths:
            if path.exists():
                self.load_from_file(path)
                loaded.append(path)
        return loaded

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary values to configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                path = f"{prefix}.{key}" if prefix else key
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {path}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, path)
                else:
                    raise ConfigError(f"Invalid config section: {path}")

        apply_to_config(self._config, data, "")

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("permissions.max_grantees", 16)
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("collateral.require_payment")
        """
        obj = self._resolve(path)
        if isinstance(obj, ConfigValue):
            return obj.get()
        return obj

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def reload(self) -> None:
        """Reload configuration from all loaded files."""
        for path in self._config_paths:
            if path.exists():
                self.load_from_file(path)

    def reset(self) -> None:
        """Drop every loaded file and override."""
        self._config = DiceNftConfig()
        self._config_paths = []

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value}")
                except ValueError as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors


def get_config() -> DiceNftConfig:
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    return ConfigManager()
