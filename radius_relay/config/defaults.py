"""Centralized default configuration values for the relay."""

from __future__ import annotations

from typing import Any

from .constants import (
    ENV_MSCHAPV2_PASSWORDS,
    ENV_RELAY_SECRET,
    SECTION_LOGGING,
    SECTION_METRICS,
    SECTION_MSCHAPV2,
    SECTION_RELAY,
)

# Relay defaults (transport/tuning)
DEFAULT_RELAY_PORTS = "1812,1813"  # RADIUS auth and accounting
DEFAULT_RELAY_MODE = "passive"  # passive|active
DEFAULT_BIND_ADDRESS = ""  # all interfaces
DEFAULT_ENDPOINT_ADDRESS = ""  # source address of server-facing sockets
DEFAULT_SOCKET_TIMEOUT = 1.0  # receiver poll interval seconds
DEFAULT_RCVBUF = 0  # 0 keeps the OS default
DEFAULT_IDLE_TIMEOUT = 0.0  # 0 disables idle eviction
DEFAULT_MAX_ENDPOINTS = 0  # 0 means unbounded
DEFAULT_BUFFER_SIZE = 4096  # RFC 2865 maximum packet length
DEFAULT_CODEC_MEMO_SIZE = 256  # request authenticators remembered

# Logging defaults
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FILE = ""  # console only
DEFAULT_LOG_ROTATION = True
DEFAULT_MAX_LOG_SIZE = "10MB"
DEFAULT_LOG_BACKUP_COUNT = 5
DEFAULT_LOG_PACKETS = False  # LoggingInterceptor in active mode

# MS-CHAPv2 inspection defaults
DEFAULT_MSCHAPV2_INSPECT = False
DEFAULT_MSCHAPV2_MAX_EXCHANGES = 1024

# Metrics exporter defaults
DEFAULT_METRICS_PORT = 0  # 0 disables the exporter
DEFAULT_METRICS_ADDRESS = "127.0.0.1"


def populate_defaults(parser: Any) -> None:
    """Populate a ConfigParser with default sections/options."""

    for section, values in CONFIG_DEFAULTS.items():
        if not parser.has_section(section):
            parser.add_section(section)
        for key, val in values.items():
            if not parser.has_option(section, key):
                parser.set(section, key, str(val))


CONFIG_DEFAULTS = {
    SECTION_RELAY: {
        "host": "",
        "ports": DEFAULT_RELAY_PORTS,
        "mode": DEFAULT_RELAY_MODE,
        "bind_address": DEFAULT_BIND_ADDRESS,
        "endpoint_address": DEFAULT_ENDPOINT_ADDRESS,
        "socket_timeout": str(DEFAULT_SOCKET_TIMEOUT),
        "rcvbuf": str(DEFAULT_RCVBUF),
        "idle_timeout": str(DEFAULT_IDLE_TIMEOUT),
        "max_endpoints": str(DEFAULT_MAX_ENDPOINTS),
        "buffer_size": str(DEFAULT_BUFFER_SIZE),
        "secret_env": ENV_RELAY_SECRET,
        "codec_memo_size": str(DEFAULT_CODEC_MEMO_SIZE),
    },
    SECTION_LOGGING: {
        "log_level": DEFAULT_LOG_LEVEL,
        "log_file": DEFAULT_LOG_FILE,
        "log_rotation": str(DEFAULT_LOG_ROTATION).lower(),
        "max_log_size": DEFAULT_MAX_LOG_SIZE,
        "backup_count": str(DEFAULT_LOG_BACKUP_COUNT),
        "log_packets": str(DEFAULT_LOG_PACKETS).lower(),
    },
    SECTION_MSCHAPV2: {
        "inspect": str(DEFAULT_MSCHAPV2_INSPECT).lower(),
        "passwords_env": ENV_MSCHAPV2_PASSWORDS,
        "max_exchanges": str(DEFAULT_MSCHAPV2_MAX_EXCHANGES),
    },
    SECTION_METRICS: {
        "port": str(DEFAULT_METRICS_PORT),
        "address": DEFAULT_METRICS_ADDRESS,
    },
}
