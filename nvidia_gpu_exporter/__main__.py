"""
Entry point for the NVIDIA GPU exporter.

Usage:
    python -m nvidia_gpu_exporter
    python -m nvidia_gpu_exporter --web.listen-address :9445 --disable-fanspeed
    python -m nvidia_gpu_exporter --once
"""

import argparse
import asyncio
import sys

from . import __version__
from .app import Application, run_once
from .config.loader import ConfigError, ConfigLoader
from .exporter.server import ExporterError
from .logging import LogConfig, get_logger, setup_logging
from .sources.base import TelemetryUnavailableError


logger = get_logger("main")


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser. Flags left unset default to None."""
    parser = argparse.ArgumentParser(
        prog="nvidia-gpu-exporter",
        description="Prometheus exporter for NVIDIA GPU telemetry via NVML",
    )

    parser.add_argument(
        "-web.listen-address", "--web.listen-address",
        dest="listen_address",
        metavar="ADDR",
        help="Address to listen on for web interface and telemetry (default: :9445)",
    )

    parser.add_argument(
        "-disable-fanspeed", "--disable-fanspeed",
        dest="disable_fanspeed",
        action="store_true",
        default=None,
        help="Disable fanspeed metric (for servers without fans)",
    )

    parser.add_argument(
        "--disable-power-limit",
        action="store_true",
        default=None,
        help="Disable power limit metrics",
    )

    parser.add_argument(
        "--disable-power-average",
        action="store_true",
        default=None,
        help="Disable driver-averaged power usage metric",
    )

    parser.add_argument(
        "--average-window",
        type=float,
        metavar="SECONDS",
        help="Window for driver-averaged metrics (default: 10)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (INFO level)",
    )

    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable debug logging (DEBUG level)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (only errors)",
    )

    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Write logs to file",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Collect a single snapshot, print it and exit",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    loader = ConfigLoader()
    try:
        config = loader.load(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(LogConfig.from_config(config.logging))

    for warning in loader.validate(config):
        logger.warning(f"Config warning: {warning}")

    try:
        if args.once:
            sys.stdout.write(run_once(config))
            return 0

        asyncio.run(Application(config).run())
        return 0
    except TelemetryUnavailableError as e:
        logger.critical(
            f"Couldn't initialize NVML: {e}. "
            "Make sure NVML is in the shared library search path."
        )
        return 1
    except ExporterError as e:
        logger.critical(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
