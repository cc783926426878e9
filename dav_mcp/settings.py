# settings.py
# Process configuration from the environment / .env

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

TRANSPORTS = ("stdio", "http")


class ConfigError(RuntimeError):
    """Fatal startup misconfiguration."""


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class Settings:
    provider: str
    credentials: Credentials
    timeout: Optional[float] = None
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000


def load_env_file(path: Optional[Path] = None) -> None:
    """Load the .env next to the package; real env vars take precedence."""
    if path is None:
        path = Path(__file__).resolve().parent.parent / ".env"
    load_dotenv(dotenv_path=path, override=False)


def _require_env(env: Mapping[str, str], name: str) -> str:
    v = (env.get(name) or "").strip()
    if not v:
        raise ConfigError(f"Missing required env var: {name}")
    return v


def _number(env: Mapping[str, str], name: str, kind, default):
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    if env is None:
        env = os.environ

    username = (env.get("DAV_USERNAME") or "").strip()
    password = env.get("DAV_PASSWORD") or ""
    if not username or not password:
        raise ConfigError(
            "DAV_USERNAME and DAV_PASSWORD environment variables are required."
        )

    transport = (env.get("MCP_TRANSPORT") or "stdio").strip().lower()
    if transport not in TRANSPORTS:
        raise ConfigError(
            f"Unsupported MCP_TRANSPORT {transport!r}, use one of {', '.join(TRANSPORTS)}"
        )

    return Settings(
        provider=_require_env(env, "DAV_PROVIDER").lower(),
        credentials=Credentials(username=username, password=password),
        timeout=_number(env, "DAV_TIMEOUT", float, None),
        transport=transport,
        host=(env.get("HOST") or "127.0.0.1").strip(),
        port=_number(env, "PORT", int, 8000),
    )
