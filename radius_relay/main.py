"""
RADIUS relay command line entry point.

Exit codes: 0 after a graceful stop, 1 on a fatal transport error,
2 on a configuration error.
"""

from __future__ import annotations

import argparse
import signal
import sys

from prometheus_client import start_http_server

from radius_relay import __version__
from radius_relay.config import RelayConfig, setup_logging
from radius_relay.config.constants import (
    SECTION_LOGGING,
    SECTION_METRICS,
    SECTION_MSCHAPV2,
    SECTION_RELAY,
)
from radius_relay.exceptions import ConfigurationError, RelayTransportError
from radius_relay.relay.engine import RelayEngine
from radius_relay.utils.logger import get_logger

logger = get_logger("radius_relay.main", component="cli")

EXIT_OK = 0
EXIT_TRANSPORT_ERROR = 1
EXIT_CONFIG_ERROR = 2


class RelayManager:
    """Owns one RelayEngine for the lifetime of the process."""

    def __init__(self, config: RelayConfig):
        self.config = config
        self.engine: RelayEngine | None = None

    def setup(self) -> None:
        self.engine = self.config.build_engine()
        metrics_cfg = self.config.get_metrics_config()
        if metrics_cfg["port"]:
            try:
                start_http_server(metrics_cfg["port"], addr=metrics_cfg["address"])
            except OSError as exc:
                raise RelayTransportError(
                    f"Cannot start metrics exporter: {exc}", port=metrics_cfg["port"]
                ) from exc
            logger.info(
                "Metrics exporter listening",
                event="relay.metrics.started",
                address=metrics_cfg["address"],
                port=metrics_cfg["port"],
            )

    def start(self) -> int:
        if self.engine is None:
            self.setup()
        assert self.engine is not None
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)
        try:
            self.engine.run(self.config.build_interceptor())
        except RelayTransportError as exc:
            logger.error(
                "Relay stopped on transport error",
                event="relay.fatal",
                error=str(exc),
                port=exc.port,
            )
            return EXIT_TRANSPORT_ERROR
        finally:
            logger.info(
                "Relay statistics",
                event="relay.stats",
                **self.engine.get_stats(),
            )
        return EXIT_OK

    def stop(self, reason: str = "stop requested") -> None:
        if self.engine is not None:
            self.engine.stop(reason)

    def _signal_handler(self, signum, frame):
        """Handle system signals"""
        logger.info("Received signal", event="relay.signal", signal=signum)
        self.stop(f"signal {signum}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radius-relay",
        description="Man-in-the-middle relay for RADIUS over UDP",
    )
    parser.add_argument("-c", "--config", help="Configuration file path")
    parser.add_argument("--host", help="Authenticator server host")
    parser.add_argument(
        "-p",
        "--port",
        dest="ports",
        type=int,
        action="append",
        help="Target port; repeat for several (default 1812 and 1813)",
    )
    parser.add_argument("--mode", choices=["passive", "active"])
    parser.add_argument("--bind", dest="bind_address", help="Listener bind address")
    parser.add_argument(
        "--endpoint-bind",
        dest="endpoint_address",
        help="Source address for server-facing sockets",
    )
    parser.add_argument("--idle-timeout", type=float, help="Evict idle peers (seconds)")
    parser.add_argument("--max-endpoints", type=int, help="Cap on live peers")
    parser.add_argument(
        "--secret-env", help="Environment variable holding the shared secret"
    )
    parser.add_argument(
        "--inspect-mschapv2",
        action="store_true",
        default=None,
        help="Verify MS-CHAPv2 exchanges (implies --mode active)",
    )
    parser.add_argument(
        "--log-packets",
        action="store_true",
        default=None,
        help="Log every relayed packet (active mode)",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--metrics-port", type=int, help="Serve Prometheus metrics")
    parser.add_argument(
        "--validate-config", action="store_true", help="Validate configuration and exit"
    )
    parser.add_argument("--version", action="version", version=f"radius-relay {__version__}")
    return parser


def apply_cli_overrides(config: RelayConfig, args: argparse.Namespace) -> None:
    mode = args.mode
    if args.inspect_mschapv2 and mode is None:
        mode = "active"
    config.set_override(SECTION_RELAY, "host", args.host)
    config.set_override(SECTION_RELAY, "ports", args.ports)
    config.set_override(SECTION_RELAY, "mode", mode)
    config.set_override(SECTION_RELAY, "bind_address", args.bind_address)
    config.set_override(SECTION_RELAY, "endpoint_address", args.endpoint_address)
    config.set_override(SECTION_RELAY, "idle_timeout", args.idle_timeout)
    config.set_override(SECTION_RELAY, "max_endpoints", args.max_endpoints)
    config.set_override(SECTION_RELAY, "secret_env", args.secret_env)
    config.set_override(SECTION_MSCHAPV2, "inspect", args.inspect_mschapv2)
    config.set_override(SECTION_LOGGING, "log_packets", args.log_packets)
    config.set_override(SECTION_LOGGING, "log_level", args.log_level)
    config.set_override(SECTION_METRICS, "port", args.metrics_port)


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    try:
        config = RelayConfig(args.config)
        apply_cli_overrides(config, args)
        setup_logging(config)
        if args.validate_config:
            config.validate()
            print("Configuration is valid")
            return EXIT_OK
        manager = RelayManager(config)
        manager.setup()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except RelayTransportError as exc:
        print(f"Failed to start relay: {exc}", file=sys.stderr)
        return EXIT_TRANSPORT_ERROR
    return manager.start()


if __name__ == "__main__":
    sys.exit(main())
