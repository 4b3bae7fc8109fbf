"""Pydantic schema for relay configuration validation."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RelaySectionSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")
    host: str | None = Field(default=None, description="Authenticator server host")
    ports: list[int] = Field(..., min_length=1, description="Target UDP ports")
    mode: str = Field(default="passive")
    bind_address: str = Field(default="", description="Listener bind address")
    endpoint_address: str = Field(default="", description="Per-peer socket bind address")
    socket_timeout: float = Field(default=1.0, gt=0, le=60)
    rcvbuf: int = Field(default=0, ge=0)
    idle_timeout: float = Field(default=0.0, ge=0)
    max_endpoints: int = Field(default=0, ge=0)
    buffer_size: int = Field(default=4096, ge=20, le=65535)
    secret_env: str = Field(default="RADIUS_RELAY_SECRET")
    codec_memo_size: int = Field(default=256, ge=1)

    @field_validator("host", mode="before")
    @classmethod
    def _blank_host(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("ports", mode="before")
    @classmethod
    def _split_ports(cls, v):
        if isinstance(v, str):
            return [p.strip() for p in v.replace(" ", ",").split(",") if p.strip()]
        if isinstance(v, int):
            return [v]
        return v

    @field_validator("ports")
    @classmethod
    def _validate_ports(cls, v: list[int]) -> list[int]:
        unique: list[int] = []
        for port in v:
            if not 1 <= port <= 65535:
                raise ValueError(f"port out of range: {port}")
            if port not in unique:
                unique.append(port)
        return unique

    @field_validator("mode")
    @classmethod
    def _validate_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in ("passive", "active"):
            raise ValueError("mode must be 'passive' or 'active'")
        return mode


class LoggingSectionSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")
    log_level: str = Field(default="INFO")
    log_file: str | None = Field(default=None)
    log_rotation: bool = Field(default=True)
    max_log_size: str = Field(default="10MB")
    backup_count: int = Field(default=5, ge=0)
    log_packets: bool = Field(default=False)

    @field_validator("log_file", mode="before")
    @classmethod
    def _blank_file(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level


class MsChapV2SectionSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")
    inspect: bool = Field(default=False)
    passwords_env: str = Field(default="RADIUS_RELAY_MSCHAPV2_PASSWORDS")
    max_exchanges: int = Field(default=1024, ge=1)


class MetricsSectionSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")
    port: int = Field(default=0, ge=0, le=65535)
    address: str = Field(default="127.0.0.1")


class RelayConfigSchema(BaseModel):
    relay: RelaySectionSchema
    logging: LoggingSectionSchema = Field(default_factory=LoggingSectionSchema)
    mschapv2: MsChapV2SectionSchema = Field(default_factory=MsChapV2SectionSchema)
    metrics: MetricsSectionSchema = Field(default_factory=MetricsSectionSchema)

    @model_validator(mode="after")
    def _inspection_needs_active(self) -> RelayConfigSchema:
        if self.mschapv2.inspect and self.relay.mode != "active":
            raise ValueError("mschapv2.inspect requires relay mode 'active'")
        return self


__all__ = [
    "RelaySectionSchema",
    "LoggingSectionSchema",
    "MsChapV2SectionSchema",
    "MetricsSectionSchema",
    "RelayConfigSchema",
]
