"""
HTTP listener serving the Prometheus exposition.

Uses prometheus_client's threaded HTTP server; every request on any path
triggers one collection through the registry.
"""

from __future__ import annotations

import socket
import threading
from wsgiref.simple_server import WSGIServer

from prometheus_client import start_http_server
from prometheus_client.registry import CollectorRegistry

from ..config.schema import WebConfig
from ..logging import get_logger


logger = get_logger("exporter.server")


class ExporterError(Exception):
    """Exception raised when the HTTP listener cannot be started."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(f"Cannot listen on {address}: {message}")


class MetricsServer:
    """
    Scrape endpoint bound to the configured listen address.

    The server runs in a daemon thread; start() returns once the socket
    is bound.
    """

    def __init__(self, registry: CollectorRegistry, config: WebConfig):
        self.registry = registry
        self.config = config
        self._server: WSGIServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> int | None:
        """Bound port (differs from the configured one when configured as 0)."""
        if self._server is None:
            return None
        return self._server.server_port

    def bind_hosts(self) -> list[str]:
        """
        Hosts to try, in order.

        An empty host means all interfaces: the IPv6 wildcard (dual-stack)
        where IPv6 is available, else the IPv4 wildcard.
        """
        if self.config.host:
            return [self.config.host]
        if socket.has_ipv6:
            return ["::", "0.0.0.0"]
        return ["0.0.0.0"]

    def start(self) -> None:
        """
        Bind the listener and start serving.

        Raises:
            ExporterError: If the address cannot be bound
        """
        error: OSError | None = None
        for host in self.bind_hosts():
            try:
                self._server, self._thread = start_http_server(
                    self.config.port,
                    addr=host,
                    registry=self.registry,
                )
            except OSError as e:
                logger.debug(f"Cannot bind {host!r}: {e}")
                error = e
                continue

            logger.info(f"Listening on {self.config.listen_address}")
            return

        raise ExporterError(self.config.listen_address, str(error)) from error

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        logger.info("HTTP listener stopped")
