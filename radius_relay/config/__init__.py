"""RADIUS relay configuration package

- INI file loading with environment variable overrides
- pydantic schema validation
- construction of a configured RelayEngine
"""

from .config import RelayConfig, parse_size, setup_logging
from .constants import *
from .schema import RelayConfigSchema

__all__ = [
    "RelayConfig",
    "RelayConfigSchema",
    "parse_size",
    "setup_logging",
]
