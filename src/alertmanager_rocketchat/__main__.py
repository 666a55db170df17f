"""CLI entry point for the Alertmanager Rocket.Chat webhook.

Usage:
    python -m alertmanager_rocketchat [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from typing import NoReturn

from pydantic import ValidationError

from alertmanager_rocketchat import __version__
from alertmanager_rocketchat.config import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    Settings,
    clear_settings_cache,
    load_settings,
)
from alertmanager_rocketchat.relay.dispatcher import NotificationDispatcher
from alertmanager_rocketchat.relay.errors import AuthenticationError
from alertmanager_rocketchat.relay.transport.rocketchat import RocketChatTransport
from alertmanager_rocketchat.server import WebhookServer
from alertmanager_rocketchat.shutdown import GracefulShutdown

APP_NAME = "alertmanager-webhook-rocketchat"

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Relay Prometheus Alertmanager notifications to Rocket.Chat.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m alertmanager_rocketchat --config.file config/rocketchat.yml
  python -m alertmanager_rocketchat --listen.address :9876 --log-level DEBUG
  python -m alertmanager_rocketchat --config-check
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config.file",
        dest="config_file",
        default=DEFAULT_CONFIG_FILE,
        help=f"Rocket.Chat configuration file (default: {DEFAULT_CONFIG_FILE})",
    )

    parser.add_argument(
        "--listen.address",
        dest="listen_address",
        default=None,
        help="The address to listen on for HTTP requests (default: from settings, :9876)",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def validate_config(config_file: str, listen_address: str | None = None) -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return load_settings(config_file, listen_address)
    except ConfigError as e:
        print(f"Cannot read config: {e}", file=sys.stderr)
        return None
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            print(f"  {field}: {error['msg']}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Print the validated configuration and exit."""
    summary = settings.redacted_summary()
    print("Configuration is valid!")
    print()
    for key, value in summary.items():
        print(f"  {key}: {value}")
    return EXIT_SUCCESS


def create_transport(settings: Settings) -> RocketChatTransport:
    return RocketChatTransport(
        settings.endpoint.url,
        username=settings.credentials.name,
        email=settings.credentials.email,
        password=settings.credentials.password.get_secret_value(),
        timeout=settings.request_timeout,
    )


def create_dispatcher(settings: Settings, transport: RocketChatTransport) -> NotificationDispatcher:
    return NotificationDispatcher(
        transport,
        settings.channel_policy(),
        settings.severity_color_map(),
        retries=settings.retry.retries,
        retry_interval=settings.retry.interval_seconds,
    )


async def run_relay(settings: Settings) -> int:
    """Log in, serve webhooks until a shutdown signal arrives.

    Returns:
        Exit code.
    """
    logger = logging.getLogger(__name__)
    transport = create_transport(settings)

    try:
        try:
            await transport.login()
        except AuthenticationError as e:
            logger.error("Cannot authorize in Rocket.Chat: %s", e)
            return EXIT_ERROR

        dispatcher = create_dispatcher(settings, transport)
        server = WebhookServer(dispatcher, health_check=transport.check_session)

        async with GracefulShutdown() as shutdown:
            shutdown.register_cleanup(server.stop)
            await server.start(settings.listen_host, settings.listen_port)
            await shutdown.wait()

        logger.info("Shutdown completed")
        return EXIT_SUCCESS
    except OSError as e:
        logger.error("Cannot start HTTP server: %s", e)
        return EXIT_ERROR
    finally:
        await transport.close()


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config(args.config_file, args.listen_address)
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    configure_logging(args.log_level or settings.log_level)

    if args.config_check:
        sys.exit(run_config_check(settings))

    logging.getLogger(__name__).info("Starting %s %s", APP_NAME, __version__)

    try:
        exit_code = asyncio.run(run_relay(settings))
    except KeyboardInterrupt:
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
