"""
Configuration schema with dataclasses for validation and type safety.

Defines all configuration sections, their fields and defaults. Values come
from built-in defaults, then environment variables, then command-line flags.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum

from ..const import DEFAULT_AVERAGE_WINDOW, DEFAULT_LISTEN_ADDRESS, DEFAULT_PORT, ENV_PREFIX


TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class MetricGroup(Enum):
    """Optional metric groups that can be switched off."""
    FAN_SPEED = "fan_speed"            # Fails or hangs on fanless servers
    POWER_LIMIT = "power_limit"        # Power management / enforced limits
    POWER_AVERAGE = "power_average"    # Driver-averaged power draw


def parse_bool(value: str) -> bool:
    """
    Parse a boolean from an environment value.

    Raises:
        ValueError: If the value is not a recognized boolean
    """
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value {value!r}")


def parse_listen_address(address: str) -> tuple[str, int]:
    """
    Split a listen address into host and port.

    Accepts "host:port", ":port" (all interfaces) and "[v6addr]:port".

    Raises:
        ValueError: If the address is malformed or the port is out of range
    """
    host, sep, port_str = address.strip().rpartition(":")
    if not sep:
        raise ValueError(f"missing port in listen address {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in listen address {address!r}") from None

    if not 0 <= port < 65536:
        raise ValueError(f"port {port} out of range in listen address {address!r}")

    return host, port


@dataclass
class WebConfig:
    """HTTP listener configuration."""
    listen_address: str = DEFAULT_LISTEN_ADDRESS
    host: str = ""  # Empty host binds all interfaces
    port: int = DEFAULT_PORT

    @classmethod
    def from_address(cls, address: str) -> "WebConfig":
        """Create WebConfig from a listen address such as ':9445'."""
        host, port = parse_listen_address(address)
        return cls(listen_address=address, host=host, port=port)


@dataclass
class MetricsConfig:
    """Metric collection configuration."""
    fan_speed: bool = True
    power_limit: bool = True
    power_average: bool = True
    average_window: float = DEFAULT_AVERAGE_WINDOW  # Seconds for driver-side averages

    def enabled(self, group: MetricGroup | None) -> bool:
        """Check whether an optional metric group is enabled (None = always on)."""
        if group is None:
            return True
        return bool(getattr(self, group.value))


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "warning"  # debug, info, warning, error
    file: str | None = None  # Log file path
    colors: bool = True  # Colored console output


@dataclass
class Config:
    """Root configuration."""
    web: WebConfig = field(default_factory=WebConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, environ: Mapping[str, str], base: "Config | None" = None) -> "Config":
        """
        Apply NVIDIA_GPU_EXPORTER_* environment variables on top of base.

        Raises:
            ValueError: If a variable has an invalid value
        """
        config = base or cls()

        def env(name: str) -> str | None:
            value = environ.get(f"{ENV_PREFIX}{name}")
            if value is None or not value.strip():
                return None
            return value

        web = config.web
        address = env("LISTEN_ADDRESS")
        if address is not None:
            web = WebConfig.from_address(address)

        # NVIDIA_GPU_EXPORTER_DISABLE_FAN_SPEED, ..._DISABLE_POWER_LIMIT, ...
        metrics = config.metrics
        for group in MetricGroup:
            value = env(f"DISABLE_{group.name}")
            if value is not None:
                metrics = replace(metrics, **{group.value: not parse_bool(value)})
        window = env("AVERAGE_WINDOW")
        if window is not None:
            metrics = replace(metrics, average_window=float(window))

        logging_config = config.logging
        level = env("LOG_LEVEL")
        if level is not None:
            logging_config = replace(logging_config, level=level.lower())
        log_file = env("LOG_FILE")
        if log_file is not None:
            logging_config = replace(logging_config, file=log_file)

        return cls(web=web, metrics=metrics, logging=logging_config)

    @classmethod
    def from_args(cls, args: object, base: "Config | None" = None) -> "Config":
        """
        Apply parsed command-line arguments on top of base.

        Flags left at None were not given and keep the base value.

        Raises:
            ValueError: If an argument has an invalid value
        """
        config = base or cls()

        def arg(name: str):
            return getattr(args, name, None)

        web = config.web
        if arg("listen_address") is not None:
            web = WebConfig.from_address(arg("listen_address"))

        metrics = config.metrics
        if arg("disable_fanspeed"):
            metrics = replace(metrics, fan_speed=False)
        if arg("disable_power_limit"):
            metrics = replace(metrics, power_limit=False)
        if arg("disable_power_average"):
            metrics = replace(metrics, power_average=False)
        if arg("average_window") is not None:
            metrics = replace(metrics, average_window=float(arg("average_window")))

        logging_config = config.logging
        if arg("debug"):
            logging_config = replace(logging_config, level="debug")
        elif arg("verbose"):
            logging_config = replace(logging_config, level="info")
        elif arg("quiet"):
            logging_config = replace(logging_config, level="error")
        if arg("log_file"):
            logging_config = replace(logging_config, file=arg("log_file"))
        if arg("no_color"):
            logging_config = replace(logging_config, colors=False)

        return cls(web=web, metrics=metrics, logging=logging_config)
