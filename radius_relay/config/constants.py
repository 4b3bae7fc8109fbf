"""Configuration constants.

Section names and environment variable names used by the configuration
system.
"""

# Section names
SECTION_RELAY = "relay"
SECTION_LOGGING = "logging"
SECTION_MSCHAPV2 = "mschapv2"
SECTION_METRICS = "metrics"

# Environment variable prefix: RADIUS_RELAY_<SECTION>_<KEY>
ENV_PREFIX = "RADIUS_RELAY_"

# Secrets (environment only)
ENV_RELAY_SECRET = "RADIUS_RELAY_SECRET"
ENV_MSCHAPV2_PASSWORDS = "RADIUS_RELAY_MSCHAPV2_PASSWORDS"

# Meta-configuration
ENV_RELAY_CONFIG = "RADIUS_RELAY_CONFIG"

# Keys that may be overridden from the environment, per section
SECTION_KEYS = {
    SECTION_RELAY: [
        "host",
        "ports",
        "mode",
        "bind_address",
        "endpoint_address",
        "socket_timeout",
        "rcvbuf",
        "idle_timeout",
        "max_endpoints",
        "buffer_size",
        "secret_env",
        "codec_memo_size",
    ],
    SECTION_LOGGING: [
        "log_level",
        "log_file",
        "log_rotation",
        "max_log_size",
        "backup_count",
        "log_packets",
    ],
    SECTION_MSCHAPV2: [
        "inspect",
        "passwords_env",
        "max_exchanges",
    ],
    SECTION_METRICS: [
        "port",
        "address",
    ],
}
