"""Typed section getters. Each one validates its section through the schema."""

from __future__ import annotations

import configparser
import json
import os
from typing import Any

from pydantic import BaseModel, ValidationError

from radius_relay.exceptions import ConfigurationError

from .constants import SECTION_LOGGING, SECTION_METRICS, SECTION_MSCHAPV2, SECTION_RELAY
from .schema import (
    LoggingSectionSchema,
    MetricsSectionSchema,
    MsChapV2SectionSchema,
    RelaySectionSchema,
)


def _section(config: configparser.ConfigParser, section: str) -> dict[str, str]:
    return dict(config[section]) if config.has_section(section) else {}


def _validated(
    schema: type[BaseModel], section: str, values: dict[str, Any]
) -> dict[str, Any]:
    try:
        return schema.model_validate(values).model_dump()
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ConfigurationError(
            f"Invalid [{section}] configuration: {first.get('msg')}",
            field=f"{section}.{field}" if field else section,
            value=first.get("input"),
        ) from exc


def get_relay_config(config: configparser.ConfigParser) -> dict[str, Any]:
    """Get relay transport configuration."""
    return _validated(RelaySectionSchema, SECTION_RELAY, _section(config, SECTION_RELAY))


def get_logging_config(config: configparser.ConfigParser) -> dict[str, Any]:
    """Get logging configuration."""
    return _validated(
        LoggingSectionSchema, SECTION_LOGGING, _section(config, SECTION_LOGGING)
    )


def get_mschapv2_config(config: configparser.ConfigParser) -> dict[str, Any]:
    """Get MS-CHAPv2 inspection configuration."""
    return _validated(
        MsChapV2SectionSchema, SECTION_MSCHAPV2, _section(config, SECTION_MSCHAPV2)
    )


def get_metrics_config(config: configparser.ConfigParser) -> dict[str, Any]:
    """Get Prometheus exporter configuration."""
    return _validated(
        MetricsSectionSchema, SECTION_METRICS, _section(config, SECTION_METRICS)
    )


def get_shared_secret(config: configparser.ConfigParser) -> bytes | None:
    """Shared secret from the environment variable named by relay.secret_env."""
    env_var = config.get(SECTION_RELAY, "secret_env", fallback="") or ""
    value = os.environ.get(env_var) if env_var else None
    return value.encode("utf-8") if value else None


def get_mschapv2_passwords(config: configparser.ConfigParser) -> dict[str, str]:
    """User → password map, a JSON object held in the environment."""
    env_var = config.get(SECTION_MSCHAPV2, "passwords_env", fallback="") or ""
    raw = os.environ.get(env_var) if env_var else None
    if not raw:
        return {}
    try:
        passwords = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"{env_var} must hold a JSON object of user names to passwords",
            field="mschapv2.passwords_env",
        ) from exc
    if not isinstance(passwords, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in passwords.items()
    ):
        raise ConfigurationError(
            f"{env_var} must map user names to password strings",
            field="mschapv2.passwords_env",
        )
    return passwords


def get_config_summary(config: configparser.ConfigParser) -> dict[str, Any]:
    """Get configuration summary for display; secrets never appear here."""
    return {
        section: dict(config[section])
        for section in (SECTION_RELAY, SECTION_LOGGING, SECTION_MSCHAPV2, SECTION_METRICS)
        if config.has_section(section)
    }
