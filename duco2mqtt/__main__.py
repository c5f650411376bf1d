"""Entry point for running Duco2MQTT as a module.

Usage:
    python -m duco2mqtt                    # Use env vars or defaults
    python -m duco2mqtt -c /path/to/config.yaml
    python -m duco2mqtt --duco-host duco.local --mqtt-addr 192.168.1.10
    python -m duco2mqtt --help
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .app import run_app
from .config import create_default_config, get_config, print_env_help
from .exceptions import ConfigError

DEFAULT_CONFIG_PATHS = [
    "/etc/duco2mqtt/config.yaml",
    "/config/config.yaml",  # Docker default
    "config.yaml",
]

# argparse destination -> (config section, key)
CLI_OVERRIDES = {
    "duco_host": ("duco", "host"),
    "duco_ip": ("duco", "ip_address"),
    "duco_cert": ("duco", "certificate"),
    "insecure": ("duco", "insecure"),
    "poll_interval": ("duco", "poll_interval"),
    "mqtt_addr": ("mqtt", "host"),
    "mqtt_port": ("mqtt", "port"),
    "mqtt_client_id": ("mqtt", "client_id"),
    "mqtt_base_topic": ("mqtt", "base_topic"),
    "hass_discovery": ("mqtt", "hass_discovery"),
    "log_level": ("logging", "level"),
}


def build_parser() -> argparse.ArgumentParser:
    """Create the command line parser."""
    parser = argparse.ArgumentParser(
        prog="duco2mqtt",
        description="Duco ventilation to MQTT bridge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Docker/Environment variables (no config file needed):
  D2M_DUCO_HOST=duco.local D2M_MQTT_ADDRESS=192.168.1.100 duco2mqtt

  # Config file:
  duco2mqtt -c /etc/duco2mqtt/config.yaml
  duco2mqtt --generate-config > config.yaml
        """,
    )

    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (optional if using env vars)",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--generate-config",
        action="store_true",
        help="Print default configuration and exit",
    )
    parser.add_argument(
        "--env-help",
        action="store_true",
        help="Print environment variable help and exit",
    )

    duco = parser.add_argument_group("Duco board")
    duco.add_argument("--duco-host", help="Board host name")
    duco.add_argument("--duco-ip", help="Board IP address, if the host name does not resolve")
    duco.add_argument("--duco-cert", help="CA certificate used to validate the board")
    duco.add_argument(
        "--insecure",
        action="store_true",
        default=None,
        help="Do not validate the board's TLS certificate",
    )
    duco.add_argument("--poll-interval", type=int, help="Poll interval in seconds (min 5)")

    mqtt = parser.add_argument_group("MQTT")
    mqtt.add_argument("--mqtt-addr", help="Broker hostname or IP")
    mqtt.add_argument("--mqtt-port", type=int, help="Broker port")
    mqtt.add_argument("--mqtt-client-id", help="MQTT client identifier")
    mqtt.add_argument("--mqtt-base-topic", help="Topic prefix for state publishing")
    mqtt.add_argument(
        "--hass-discovery",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Publish Home Assistant discovery configs",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level",
    )
    return parser


def cli_overrides(args: argparse.Namespace) -> dict[str, dict[str, Any]]:
    """Collect the configuration options given on the command line."""
    overrides: dict[str, dict[str, Any]] = {}
    for dest, (section, key) in CLI_OVERRIDES.items():
        value = getattr(args, dest, None)
        if value is not None:
            overrides.setdefault(section, {})[key] = value
    return overrides


def find_config_path(args: argparse.Namespace) -> Optional[str]:
    """Pick the configuration file, if any.

    An explicit -c wins. Without one, a default location is only used when
    neither the environment nor the command line names the board.
    """
    if args.config:
        return args.config

    if os.environ.get("D2M_DUCO_HOST") or args.duco_host:
        return None

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return path
    return None


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = build_parser().parse_args(argv)

    # Handle --generate-config
    if args.generate_config:
        print(create_default_config())
        return 0

    # Handle --env-help
    if args.env_help:
        print(print_env_help())
        return 0

    config_path = find_config_path(args)
    if config_path:
        print(f"Using configuration file: {config_path}")

    try:
        config = get_config(config_path, cli_overrides(args))
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("\nFor environment variable help: duco2mqtt --env-help", file=sys.stderr)
        return 1

    # Run the application
    try:
        asyncio.run(run_app(config))
        return 0
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
