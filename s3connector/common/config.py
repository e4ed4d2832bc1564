from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

ADDRESSING_STYLES: tuple[str, ...] = ("path", "virtual")
SIGNATURE_METHODS: tuple[str, ...] = ("v2", "v4")


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


@dataclass
class Settings:
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_SESSION_TOKEN: str | None = None
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT: str = "s3.amazonaws.com"
    S3_USE_SSL: bool = True
    S3_ADDRESSING_STYLE: str = "path"
    S3_SIGNATURE_METHOD: str = "v4"
    S3_REQUEST_TIMEOUT: int = 30

    def __post_init__(self) -> None:
        self.S3_ADDRESSING_STYLE = (self.S3_ADDRESSING_STYLE or "path").strip().lower()
        if self.S3_ADDRESSING_STYLE not in ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}."
            )
        self.S3_SIGNATURE_METHOD = (self.S3_SIGNATURE_METHOD or "v4").strip().lower()
        if self.S3_SIGNATURE_METHOD not in SIGNATURE_METHODS:
            raise ValueError(
                f"S3_SIGNATURE_METHOD must be one of {', '.join(SIGNATURE_METHODS)}."
            )
        if self.S3_REQUEST_TIMEOUT <= 0:
            raise ValueError("S3_REQUEST_TIMEOUT must be positive.")

    @property
    def scheme(self) -> str:
        return "https" if self.S3_USE_SSL else "http"

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_SESSION_TOKEN=os.environ.get("S3_SESSION_TOKEN"),
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ENDPOINT=os.environ.get("S3_ENDPOINT", cls.S3_ENDPOINT),
            S3_USE_SSL=_as_bool(os.environ.get("S3_USE_SSL"), cls.S3_USE_SSL),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            S3_SIGNATURE_METHOD=os.environ.get(
                "S3_SIGNATURE_METHOD", cls.S3_SIGNATURE_METHOD
            ),
            S3_REQUEST_TIMEOUT=int(
                os.environ.get("S3_REQUEST_TIMEOUT", cls.S3_REQUEST_TIMEOUT)
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
