from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

MIB = 1024 * 1024
# S3 rejects non-terminal parts smaller than this at commit time
MIN_PART_SIZE_BYTES = 5 * MIB
DEFAULT_PART_SIZE_BYTES = 5 * MIB
DEFAULT_PRESIGN_EXPIRES_SECONDS = 900


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass
class Settings:
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_SESSION_TOKEN: str | None = None
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "path"
    S3_BUCKET: str | None = None
    STORAGE_PART_SIZE_BYTES: int = DEFAULT_PART_SIZE_BYTES
    STORAGE_MAX_CONCURRENCY: int = 4
    STORAGE_PRESIGN_EXPIRES_SECONDS: int = DEFAULT_PRESIGN_EXPIRES_SECONDS
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    def __post_init__(self) -> None:
        if self.STORAGE_PART_SIZE_BYTES < MIN_PART_SIZE_BYTES:
            raise ValueError(
                f"STORAGE_PART_SIZE_BYTES must be at least {MIN_PART_SIZE_BYTES} bytes."
            )
        if self.STORAGE_MAX_CONCURRENCY < 1:
            raise ValueError("STORAGE_MAX_CONCURRENCY must be at least 1.")
        if self.STORAGE_PRESIGN_EXPIRES_SECONDS <= 0:
            raise ValueError("STORAGE_PRESIGN_EXPIRES_SECONDS must be positive.")
        addressing_style = (self.S3_ADDRESSING_STYLE or "").strip().lower()
        if addressing_style not in {"auto", "path", "virtual"}:
            raise ValueError(
                "S3_ADDRESSING_STYLE must be one of 'auto', 'path' or 'virtual'."
            )

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL") or None,
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID") or None,
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY") or None,
            S3_SESSION_TOKEN=os.environ.get("S3_SESSION_TOKEN") or None,
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_BUCKET=os.environ.get("S3_BUCKET") or None,
            STORAGE_PART_SIZE_BYTES=_as_int(
                os.environ.get("STORAGE_PART_SIZE_BYTES"), cls.STORAGE_PART_SIZE_BYTES
            ),
            STORAGE_MAX_CONCURRENCY=_as_int(
                os.environ.get("STORAGE_MAX_CONCURRENCY"), cls.STORAGE_MAX_CONCURRENCY
            ),
            STORAGE_PRESIGN_EXPIRES_SECONDS=_as_int(
                os.environ.get("STORAGE_PRESIGN_EXPIRES_SECONDS"),
                cls.STORAGE_PRESIGN_EXPIRES_SECONDS,
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            LOG_JSON=_as_bool(os.environ.get("LOG_JSON"), cls.LOG_JSON),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
