"""Configuration management with Pydantic validation.

Supports three configuration sources:
1. YAML config file (when given with -c)
2. Environment variables (for Docker), used when no file is given
3. Default values

Command line options are applied on top of whichever source was used.
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .models.node_kinds import NodeKindSpec


class DucoConfig(BaseModel):
    """Duco connectivity board configuration."""

    host: Optional[str] = Field(
        default=None,
        description="Board host name (used for the URL and TLS validation)"
    )
    ip_address: Optional[str] = Field(
        default=None,
        description="Board IP address, if the host name does not resolve"
    )
    certificate: Optional[Path] = Field(
        default=None,
        description="CA certificate (PEM) used to validate the board"
    )
    insecure: bool = Field(
        default=False,
        description="Disable TLS certificate validation"
    )
    poll_interval: int = Field(
        default=60,
        ge=5,
        le=3600,
        description="Polling interval in seconds"
    )
    connect_timeout: float = Field(
        default=15.0,
        gt=0,
        le=120,
        description="Connect timeout in seconds"
    )
    device_info: bool = Field(
        default=True,
        description="Also read the board level /info record"
    )

    @field_validator("host", "ip_address", "certificate", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v


class MQTTConfig(BaseModel):
    """MQTT broker configuration."""

    host: Optional[str] = Field(
        default=None,
        description="MQTT broker hostname or IP"
    )
    port: int = Field(
        default=1883,
        ge=1,
        le=65535,
        description="MQTT broker port"
    )
    username: Optional[str] = Field(
        default=None,
        description="MQTT username (optional)"
    )
    password: Optional[str] = Field(
        default=None,
        description="MQTT password (optional)"
    )
    client_id: str = Field(
        default="duco2mqtt",
        description="MQTT client identifier"
    )
    base_topic: str = Field(
        default="duco",
        min_length=1,
        description="Topic prefix for state publishing"
    )
    hass_discovery: bool = Field(
        default=True,
        description="Publish Home Assistant discovery configs"
    )
    discovery_prefix: str = Field(
        default="homeassistant",
        description="Home Assistant MQTT discovery prefix"
    )
    retain: bool = Field(
        default=True,
        description="Retain state messages"
    )
    qos: int = Field(
        default=1,
        ge=0,
        le=2,
        description="MQTT QoS level"
    )
    reconnect_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between broker reconnect attempts"
    )
    max_queued_messages: int = Field(
        default=100,
        ge=1,
        description="Outbound message queue size"
    )

    @field_validator("host", "username", "password", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v

    @field_validator("base_topic")
    @classmethod
    def strip_slashes(cls, v):
        """Topics are joined with '/', so drop surrounding ones."""
        return v.strip("/")

    @property
    def availability_topic(self) -> str:
        """Topic carrying online/offline."""
        return f"{self.base_topic}/state"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    file: Optional[Path] = Field(
        default=None,
        description="Log file path (optional)"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v


class AppConfig(BaseModel):
    """Complete application configuration."""

    duco: DucoConfig = Field(
        default_factory=DucoConfig,
        description="Duco board settings"
    )
    mqtt: MQTTConfig = Field(
        default_factory=MQTTConfig,
        description="MQTT broker settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )
    node_kinds: dict[str, NodeKindSpec] = Field(
        default_factory=dict,
        description="Additional or overriding node kinds, keyed by board type code"
    )

    def validate_required(self) -> None:
        """Check the settings that have no usable default.

        Raises:
            ConfigError: If the board host or broker address is missing,
                or the certificate file does not exist
        """
        if not self.duco.host:
            raise ConfigError("No Duco board host configured (--duco-host / D2M_DUCO_HOST)")
        if not self.mqtt.host:
            raise ConfigError("No MQTT broker address configured (--mqtt-addr / D2M_MQTT_ADDRESS)")
        if self.duco.certificate and not self.duco.certificate.is_file():
            raise ConfigError(f"Certificate file not found: {self.duco.certificate}")


def _to_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


# Environment variable mapping
ENV_MAPPING = {
    # Duco board
    "D2M_DUCO_HOST": ("duco", "host"),
    "D2M_DUCO_IP": ("duco", "ip_address"),
    "D2M_DUCO_CERT": ("duco", "certificate"),
    "D2M_DUCO_INSECURE": ("duco", "insecure", _to_bool),
    "D2M_POLL_INTERVAL": ("duco", "poll_interval", int),
    "D2M_DUCO_CONNECT_TIMEOUT": ("duco", "connect_timeout", float),
    "D2M_DUCO_DEVICE_INFO": ("duco", "device_info", _to_bool),

    # MQTT
    "D2M_MQTT_ADDRESS": ("mqtt", "host"),
    "D2M_MQTT_PORT": ("mqtt", "port", int),
    "D2M_MQTT_USER": ("mqtt", "username"),
    "D2M_MQTT_PASS": ("mqtt", "password"),
    "D2M_MQTT_CLIENT_ID": ("mqtt", "client_id"),
    "D2M_MQTT_BASE_TOPIC": ("mqtt", "base_topic"),
    "D2M_HASS_DISCOVERY": ("mqtt", "hass_discovery", _to_bool),
    "D2M_MQTT_DISCOVERY_PREFIX": ("mqtt", "discovery_prefix"),
    "D2M_MQTT_RETAIN": ("mqtt", "retain", _to_bool),
    "D2M_MQTT_QOS": ("mqtt", "qos", int),

    # Logging
    "D2M_LOG_LEVEL": ("logging", "level"),
}


def _get_env_value(env_var: str, mapping: tuple):
    """Get environment variable value with optional type conversion."""
    value = os.environ.get(env_var)
    if value is None:
        return None

    # Apply type conversion if specified
    if len(mapping) > 2:
        converter = mapping[2]
        try:
            return converter(value)
        except (ValueError, TypeError):
            # Leave it to pydantic to report the bad value
            return value
    return value


def env_config_dict() -> dict[str, dict[str, Any]]:
    """Collect configuration values from environment variables."""
    config_dict: dict[str, dict[str, Any]] = {
        "duco": {},
        "mqtt": {},
        "logging": {},
    }

    for env_var, mapping in ENV_MAPPING.items():
        value = _get_env_value(env_var, mapping)
        if value is not None:
            section = mapping[0]
            key = mapping[1]
            config_dict[section][key] = value

    return config_dict


def file_config_dict(config_path: str) -> dict[str, Any]:
    """Read a YAML configuration file.

    Raises:
        ConfigError: If the file does not exist or is not valid YAML
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, "r") as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")

    # Support environment variable substitution
    return _substitute_env_vars(raw_config)


def _merge(base: dict, overrides: dict) -> dict:
    """Recursively merge overrides into a copy of base."""
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def get_config(
    config_path: Optional[str] = None,
    overrides: Optional[dict[str, dict[str, Any]]] = None,
) -> AppConfig:
    """Build the validated configuration.

    Priority:
    1. Overrides (command line options)
    2. Config file (if a path is given), otherwise environment variables
    3. Default values

    Args:
        config_path: Optional path to YAML config file
        overrides: Section -> key -> value, e.g. {"mqtt": {"port": 1884}}

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigError: If the configuration is invalid or incomplete
    """
    if config_path:
        raw = file_config_dict(config_path)
    else:
        raw = env_config_dict()

    if overrides:
        raw = _merge(raw, overrides)

    try:
        config = AppConfig(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    config.validate_required()
    return config


def _substitute_env_vars(config):
    """Recursively substitute environment variables in config values.

    Environment variables are referenced as ${VAR_NAME} or $VAR_NAME.
    """
    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    elif isinstance(config, str):
        # Handle ${VAR_NAME} format
        if config.startswith("${") and config.endswith("}"):
            var_name = config[2:-1]
            return os.environ.get(var_name, config)
        # Handle $VAR_NAME format
        elif config.startswith("$") and not config.startswith("${"):
            var_name = config[1:]
            return os.environ.get(var_name, config)
        return config
    else:
        return config


def create_default_config() -> str:
    """Generate default configuration as YAML string."""
    config = AppConfig()
    return yaml.dump(
        config.model_dump(mode="json", exclude_none=True, exclude={"node_kinds"}),
        default_flow_style=False,
        sort_keys=False,
    )


def print_env_help() -> str:
    """Generate help text for environment variables."""
    lines = [
        "Environment Variables:",
        "",
        "  Duco board:",
        "    D2M_DUCO_HOST            Board host name (required)",
        "    D2M_DUCO_IP              Board IP address (optional)",
        "    D2M_DUCO_CERT            CA certificate for TLS validation (optional)",
        "    D2M_DUCO_INSECURE        Skip TLS validation (default: false)",
        "    D2M_POLL_INTERVAL        Poll interval seconds, >= 5 (default: 60)",
        "    D2M_DUCO_CONNECT_TIMEOUT Connect timeout seconds (default: 15)",
        "    D2M_DUCO_DEVICE_INFO     Publish board level info (default: true)",
        "",
        "  MQTT:",
        "    D2M_MQTT_ADDRESS          Broker hostname/IP (required)",
        "    D2M_MQTT_PORT             Broker port (default: 1883)",
        "    D2M_MQTT_USER             Username (optional)",
        "    D2M_MQTT_PASS             Password (optional)",
        "    D2M_MQTT_CLIENT_ID        Client ID (default: duco2mqtt)",
        "    D2M_MQTT_BASE_TOPIC       Topic prefix (default: duco)",
        "    D2M_HASS_DISCOVERY        Publish HA discovery (default: true)",
        "    D2M_MQTT_DISCOVERY_PREFIX HA discovery prefix (default: homeassistant)",
        "",
        "  Logging:",
        "    D2M_LOG_LEVEL            DEBUG, INFO, WARNING, ERROR (default: INFO)",
    ]
    return "\n".join(lines)
