"""
Configuration loader with environment/argument merging and validation.
"""

import math
import os
from collections.abc import Mapping

from .schema import Config


# Rough size of the driver's sample buffer; longer windows return fewer samples
MAX_SAMPLE_WINDOW = 60.0


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


class ConfigLoader:
    """
    Builds the configuration from defaults, environment and CLI flags.

    Usage:
        loader = ConfigLoader()
        config = loader.load(args)
        for warning in loader.validate(config):
            ...
    """

    def __init__(self, environ: Mapping[str, str] | None = None):
        self.environ = os.environ if environ is None else environ

    def load(self, args: object | None = None) -> Config:
        """
        Load configuration.

        Args:
            args: Parsed argparse namespace (None to use environment only)

        Returns:
            Validated Config object

        Raises:
            ConfigError: If a value is invalid
        """
        try:
            config = Config.from_env(self.environ)
            if args is not None:
                config = Config.from_args(args, base=config)
        except ValueError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        window = config.metrics.average_window
        if not math.isfinite(window) or window <= 0:
            raise ConfigError(
                f"Invalid configuration: average window must be a positive number, "
                f"got {config.metrics.average_window}"
            )

        return config

    def validate(self, config: Config) -> list[str]:
        """
        Validate configuration and return list of warnings.

        Args:
            config: Configuration to validate

        Returns:
            List of warning messages (empty if no issues)
        """
        warnings = []

        if config.metrics.average_window > MAX_SAMPLE_WINDOW:
            warnings.append(
                f"Average window of {config.metrics.average_window:g}s exceeds the driver "
                f"sample buffer (~{MAX_SAMPLE_WINDOW:g}s); averages cover less time than requested"
            )

        if config.web.port < 1024:
            warnings.append(f"Listen port {config.web.port} is privileged and may require root")

        return warnings
