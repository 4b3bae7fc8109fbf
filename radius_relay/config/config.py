"""
Configuration Management for the RADIUS relay

Thin orchestration layer over the loader, the section getters and the
pydantic schema. It also knows how to turn a validated configuration into
a ready-to-run RelayEngine.
"""

import configparser
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any

from pydantic import ValidationError

from radius_relay.exceptions import ConfigurationError
from radius_relay.mschapv2.inspector import MsChapV2Inspector
from radius_relay.radius.codec import RADIUSPacketCodec
from radius_relay.relay.engine import RelayEngine
from radius_relay.relay.interceptor import LoggingInterceptor, PacketInterceptor
from radius_relay.utils.logger import configure as configure_logging
from radius_relay.utils.logger import get_logger

from .constants import ENV_RELAY_CONFIG, SECTION_KEYS
from .defaults import populate_defaults
from .getters import (
    get_config_summary,
    get_logging_config,
    get_metrics_config,
    get_mschapv2_config,
    get_mschapv2_passwords,
    get_relay_config,
    get_shared_secret,
)
from .loader import load_config
from .schema import RelayConfigSchema

logger = get_logger(__name__)


def parse_size(size_str: str) -> int:
    """Parse human readable size strings like '10MB' -> bytes.

    Raises:
        ConfigurationError: the string is not a size.
    """
    s = size_str.strip().upper()
    units = {"KB": 1024, "MB": 1024**2, "GB": 1024**3}
    try:
        for suffix, factor in units.items():
            if s.endswith(suffix):
                return int(float(s[:-2]) * factor)
        return int(s)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid size: {size_str!r}", field="logging.max_log_size", value=size_str
        ) from exc


class RelayConfig:
    """RADIUS relay configuration manager."""

    def __init__(self, config_file: str | None = None):
        """
        Args:
            config_file: Path to an INI file. Falls back to $RADIUS_RELAY_CONFIG;
                without either, only environment and defaults apply.
        """
        self.config_source = config_file or os.environ.get(ENV_RELAY_CONFIG)
        defaults = configparser.ConfigParser(interpolation=None)
        populate_defaults(defaults)
        self.config = load_config(self.config_source, defaults)

    def set_override(self, section: str, key: str, value: Any) -> None:
        """Override one value (command line flags); None leaves it alone."""
        if value is None:
            return
        if key not in SECTION_KEYS.get(section, []):
            raise ConfigurationError(
                f"Unknown configuration key: {section}.{key}", field=f"{section}.{key}"
            )
        if isinstance(value, bool):
            text = str(value).lower()
        elif isinstance(value, (list, tuple)):
            text = ",".join(str(v) for v in value)
        else:
            text = str(value)
        self.config.set(section, key, text)

    def get_relay_config(self) -> dict[str, Any]:
        return get_relay_config(self.config)

    def get_logging_config(self) -> dict[str, Any]:
        return get_logging_config(self.config)

    def get_mschapv2_config(self) -> dict[str, Any]:
        return get_mschapv2_config(self.config)

    def get_metrics_config(self) -> dict[str, Any]:
        return get_metrics_config(self.config)

    def get_shared_secret(self) -> bytes | None:
        return get_shared_secret(self.config)

    def get_mschapv2_passwords(self) -> dict[str, str]:
        return get_mschapv2_passwords(self.config)

    def get_config_summary(self) -> dict[str, Any]:
        return get_config_summary(self.config)

    def validate(self) -> RelayConfigSchema:
        """Validate the whole configuration, including cross-section rules.

        Raises:
            ConfigurationError: first problem found.
        """
        sections = {
            section: dict(self.config[section])
            for section in SECTION_KEYS
            if self.config.has_section(section)
        }
        try:
            schema = RelayConfigSchema.model_validate(sections)
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(p) for p in first.get("loc", ())) or None
            raise ConfigurationError(
                f"Invalid configuration: {first.get('msg')}",
                field=field,
                value=first.get("input"),
            ) from exc
        if not schema.relay.host:
            raise ConfigurationError(
                "relay.host is required (config file, RADIUS_RELAY_RELAY_HOST or --host)",
                field="relay.host",
            )
        return schema

    def build_codec(self) -> RADIUSPacketCodec:
        relay = self.get_relay_config()
        return RADIUSPacketCodec(
            secret=self.get_shared_secret(), memo_size=relay["codec_memo_size"]
        )

    def build_interceptor(self) -> PacketInterceptor | None:
        """Interceptor selected by configuration; None means pass-through."""
        if self.get_mschapv2_config()["inspect"]:
            return MsChapV2Inspector(
                self.get_mschapv2_passwords(),
                max_exchanges=self.get_mschapv2_config()["max_exchanges"],
            )
        if self.get_logging_config()["log_packets"]:
            return LoggingInterceptor()
        return None

    def build_engine(self) -> RelayEngine:
        """Validated, configured engine; call ``run`` on it."""
        schema = self.validate()
        relay = schema.relay
        if relay.mode == "passive" and self.get_shared_secret():
            logger.info(
                "Shared secret ignored in passive mode",
                event="relay.config.secret_unused",
            )
        engine = RelayEngine(
            self.build_codec(),
            bind_address=relay.bind_address,
            endpoint_address=relay.endpoint_address,
            socket_timeout=relay.socket_timeout,
            rcvbuf=relay.rcvbuf or None,
            idle_timeout=relay.idle_timeout,
            max_endpoints=relay.max_endpoints,
            buffer_size=relay.buffer_size,
        )
        engine.configure(relay.mode, relay.host or "", *relay.ports)
        return engine


def setup_logging(config: RelayConfig, level: str | None = None) -> None:
    """Setup logging based on configuration; ``level`` wins over the file."""
    log_config = config.get_logging_config()
    log_file = log_config["log_file"]
    log_level = (level or log_config["log_level"]).upper()

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        if log_config["log_rotation"]:
            file_handler: logging.Handler = RotatingFileHandler(
                log_file,
                maxBytes=parse_size(log_config["max_log_size"]),
                backupCount=log_config["backup_count"],
            )
        else:
            file_handler = logging.FileHandler(log_file)
        handlers.append(file_handler)

    configure_logging(level=log_level, handlers=handlers)
    logger.info(
        "Logging configured",
        event="relay.logging.configured",
        level=log_level,
        file=log_file or "console-only",
    )
