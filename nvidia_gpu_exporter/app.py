"""
Main application orchestrator.

Handles:
- Telemetry library lifecycle (initialize once, shut down on exit)
- Collector and registry setup
- HTTP listener
- Graceful shutdown
"""

import asyncio
import signal

from prometheus_client import generate_latest

from .collectors.gpu import GPUCollector
from .config.schema import Config
from .exporter.registry import create_registry
from .exporter.server import MetricsServer
from .logging import get_logger
from .sources.base import TelemetryError, TelemetrySource


logger = get_logger("app")


def create_source() -> TelemetrySource:
    """Create the NVML telemetry source."""
    from .sources.nvml import NVMLSource

    return NVMLSource()


class Application:
    """
    Main application class.

    Owns the telemetry source, the GPU collector, the registry and the
    HTTP listener. Collection itself happens on the listener's request
    threads, one sweep per scrape.
    """

    def __init__(self, config: Config, source: TelemetrySource | None = None):
        """
        Initialize application.

        Args:
            config: Application configuration
            source: Telemetry source (NVML if not given)
        """
        self.config = config
        self.source = source or create_source()

        self.collector = GPUCollector(self.source, config.metrics)
        self.registry = create_registry(self.collector)
        self.server = MetricsServer(self.registry, config.web)

        self._source_ready = False
        self._shutdown_event: asyncio.Event | None = None

    def initialize_source(self) -> None:
        """
        Initialize the telemetry library and log the driver version.

        Raises:
            TelemetryUnavailableError: If the library cannot be initialized
        """
        self.source.initialize()
        self._source_ready = True

        try:
            logger.info(f"Driver version: {self.source.driver_version()}")
        except TelemetryError as e:
            logger.warning(f"Could not read driver version: {e}")

    def shutdown_source(self) -> None:
        if not self._source_ready:
            return
        self._source_ready = False
        self.source.shutdown()

    def render(self) -> str:
        """Run one sweep and return the text exposition."""
        return generate_latest(self.registry).decode("utf-8")

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

    def _signal_handler(self) -> None:
        """Handle shutdown signals."""
        logger.info("Received shutdown signal")
        self.request_shutdown()

    def request_shutdown(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    async def start(self) -> None:
        """
        Start the application and serve until shutdown is requested.

        Raises:
            TelemetryUnavailableError: If the telemetry library cannot be initialized
            ExporterError: If the listener cannot bind
        """
        logger.info("Starting NVIDIA GPU exporter")
        self._shutdown_event = asyncio.Event()

        self.initialize_source()
        try:
            self.server.start()
            self._setup_signal_handlers()

            logger.info(
                f"Exporting {len(self.collector.describe())} metrics "
                f"on {self.config.web.listen_address}"
            )

            await self._shutdown_event.wait()
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop the listener and release the telemetry library."""
        logger.info("Stopping NVIDIA GPU exporter")
        self.server.stop()
        self.shutdown_source()

    async def run(self) -> None:
        """Run the application until shutdown."""
        try:
            await self.start()
        except KeyboardInterrupt:
            pass


def run_once(config: Config, source: TelemetrySource | None = None) -> str:
    """
    Initialize the library, run a single sweep and return its exposition.

    Args:
        config: Application configuration
        source: Telemetry source (NVML if not given)

    Returns:
        Prometheus text exposition of one sweep
    """
    app = Application(config, source)
    app.initialize_source()
    try:
        return app.render()
    finally:
        app.shutdown_source()
