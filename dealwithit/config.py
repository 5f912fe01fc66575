"""Service configuration.

Values come from an optional YAML file (``DEALWITHIT_CONFIG`` or
``config.yaml`` next to this module) and are then overridden by
``DEALWITHIT_*`` environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from .models.domain import (
    FinalFrameDelay,
    LoopMode,
    LoopSettings,
    RenderConfiguration,
)


class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3002
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]


class WorkerConfig(BaseModel):
    backend: str = "process"
    start_method: str = "spawn"
    shutdown_timeout_s: float = 5.0


class RenderDefaults(BaseModel):
    frame_count: int = Field(15, ge=2)
    frame_delay_ms: int = Field(100, ge=0)
    final_frame_delay_enabled: bool = True
    final_frame_delay_ms: int = Field(1000, ge=10)
    loop_mode: LoopMode = LoopMode.INFINITE
    loop_count: int = Field(5, ge=1)
    output_max_dimension: int = Field(160, ge=1)

    def to_configuration(self) -> RenderConfiguration:
        return RenderConfiguration(
            frame_count=self.frame_count,
            frame_delay_ms=self.frame_delay_ms,
            final_frame_delay=FinalFrameDelay(
                enabled=self.final_frame_delay_enabled,
                value_ms=self.final_frame_delay_ms,
            ),
            loop=LoopSettings(mode=self.loop_mode, count=self.loop_count),
            output_max_dimension=self.output_max_dimension,
        )


class Settings(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    render: RenderDefaults = Field(default_factory=RenderDefaults)
    max_sessions: int = 100


def load_settings(path: Path | None = None) -> Settings:
    env_path = os.getenv("DEALWITHIT_CONFIG")
    path = path or (Path(env_path) if env_path else Path(__file__).with_name("config.yaml"))
    if path.exists():
        data = yaml.safe_load(path.read_text()) or {}
        settings = Settings(**data)
    else:
        settings = Settings()

    # environment overrides
    host = os.getenv("DEALWITHIT_HOST")
    if host:
        settings.server.host = host
    port = os.getenv("DEALWITHIT_PORT")
    if port:
        settings.server.port = int(port)
    log_level = os.getenv("DEALWITHIT_LOG_LEVEL")
    if log_level:
        settings.server.log_level = log_level.upper()
    backend = os.getenv("DEALWITHIT_WORKER_BACKEND")
    if backend:
        settings.worker.backend = backend
    start_method = os.getenv("DEALWITHIT_WORKER_START_METHOD")
    if start_method:
        settings.worker.start_method = start_method
    return settings
