"""Read the relay's INI file and fill gaps from the environment.

Precedence per key: config file, then ``RADIUS_RELAY_<SECTION>_<KEY>``,
then the built-in defaults. The shared secret and MS-CHAPv2 passwords are
never read from the file; see :mod:`radius_relay.config.config`.
"""

import configparser
import os

from radius_relay.utils.logger import get_logger

from .constants import ENV_PREFIX, SECTION_KEYS

logger = get_logger(__name__)


def env_var_name(section: str, key: str) -> str:
    return f"{ENV_PREFIX}{section.upper()}_{key.upper()}"


def _set_missing(
    config: configparser.ConfigParser, section: str, key: str, value: str
) -> bool:
    if not config.has_section(section):
        config.add_section(section)
    if config.has_option(section, key):
        return False
    config.set(section, key, value)
    return True


def apply_env_overrides(config: configparser.ConfigParser) -> list[str]:
    """Copy ``RADIUS_RELAY_*`` values for keys the file left unset.

    Returns the names of the variables that were applied.
    """
    applied = []
    for section, keys in SECTION_KEYS.items():
        for key in keys:
            name = env_var_name(section, key)
            value = os.environ.get(name)
            if value is None:
                continue
            if _set_missing(config, section, key, value):
                applied.append(name)
            else:
                logger.debug(
                    "Environment value ignored, key set in config file",
                    event="relay.config.env_ignored",
                    env_var=name,
                )
    if applied:
        logger.debug(
            "Environment values applied",
            event="relay.config.env_applied",
            env_vars=applied,
        )
    return applied


def load_config(
    source: str | None, defaults: configparser.ConfigParser | None = None
) -> configparser.ConfigParser:
    """Build the effective ConfigParser for ``source`` (a path, may be None)."""
    config = configparser.ConfigParser(interpolation=None)

    if source and os.path.exists(source):
        logger.info("Reading relay configuration", event="relay.config.read", source=source)
        config.read(source, encoding="utf-8")
    elif source:
        logger.warning(
            "Relay configuration file not found, continuing with environment and defaults",
            event="relay.config.missing_file",
            source=source,
        )

    apply_env_overrides(config)

    for section in defaults.sections() if defaults else ():
        for key, value in defaults.items(section):
            _set_missing(config, section, key, value)

    return config
