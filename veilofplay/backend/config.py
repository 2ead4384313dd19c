"""Configuration helpers for registry runtime."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass(frozen=True)
class RegistrySettings:
    grid_min: int
    grid_max: int
    ciphertext_bits: int
    protocol_id: int
    permit_secret: str
    server_salt: str
    database_url: str | None
    host: str
    port: int
    log_level: str


def load_settings() -> RegistrySettings:
    return RegistrySettings(
        grid_min=int(os.getenv("VEILOFPLAY_GRID_MIN", "1")),
        grid_max=int(os.getenv("VEILOFPLAY_GRID_MAX", "10")),
        ciphertext_bits=int(os.getenv("VEILOFPLAY_CIPHERTEXT_BITS", "8")),
        protocol_id=int(os.getenv("VEILOFPLAY_PROTOCOL_ID", "1")),
        permit_secret=os.getenv("VEILOFPLAY_PERMIT_SECRET", "dev-secret"),
        server_salt=os.getenv("VEILOFPLAY_SERVER_SALT", "dev-salt"),
        database_url=os.getenv("VEILOFPLAY_DATABASE_URL"),
        host=os.getenv("VEILOFPLAY_HOST", "127.0.0.1"),
        port=int(os.getenv("VEILOFPLAY_PORT", "8000")),
        log_level=os.getenv("VEILOFPLAY_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(handler, "_veilofplay", False) for handler in root.handlers):
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        console._veilofplay = True  # type: ignore[attr-defined]
        root.addHandler(console)
