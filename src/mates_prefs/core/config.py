"""
Mates Configuration — single source of truth for all settings.

Reads from environment variables with sensible defaults.
No config files, no YAML. A local .env is picked up if present.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class MatrixConfig:
    """Homeserver connection settings."""

    homeserver: str = "https://matrix.org"
    access_token: str = ""
    user_id: str = ""
    sync_timeout_ms: int = 30000  # long-poll hold on the server side
    request_timeout: float = 40.0  # seconds, must exceed sync_timeout_ms
    sync_retry_delay: float = 5.0

    @classmethod
    def from_env(cls) -> MatrixConfig:
        return cls(
            homeserver=os.getenv("MATRIX_HOMESERVER", "https://matrix.org").rstrip("/"),
            access_token=os.getenv("MATRIX_ACCESS_TOKEN", ""),
            user_id=os.getenv("MATRIX_USER_ID", ""),
            sync_timeout_ms=int(os.getenv("MATES_SYNC_TIMEOUT_MS", "30000")),
            request_timeout=float(os.getenv("MATES_REQUEST_TIMEOUT", "40.0")),
            sync_retry_delay=float(os.getenv("MATES_SYNC_RETRY_DELAY", "5.0")),
        )


@dataclass(frozen=True)
class PrefsConfig:
    """Preference storage and observer settings."""

    event_type: str = "dev.mates.user_prefs"
    poll_interval: float = 0.4  # seconds between client handle polls
    avatar_size: int = 48
    home_label: str = "home"
    api_name: str = "matesUserData"
    active_space: str = ""  # ambient label for the current-space heuristic

    @classmethod
    def from_env(cls) -> PrefsConfig:
        return cls(
            event_type=os.getenv("MATES_PREFS_EVENT_TYPE", "dev.mates.user_prefs"),
            poll_interval=float(os.getenv("MATES_POLL_INTERVAL", "0.4")),
            avatar_size=int(os.getenv("MATES_AVATAR_SIZE", "48")),
            home_label=os.getenv("MATES_HOME_LABEL", "home"),
            api_name=os.getenv("MATES_API_NAME", "matesUserData"),
            active_space=os.getenv("MATES_ACTIVE_SPACE", ""),
        )


@dataclass(frozen=True)
class ServerConfig:
    """Debug HTTP API settings."""

    host: str = "127.0.0.1"
    port: int = 8010
    debug_api: bool = False

    @classmethod
    def from_env(cls) -> ServerConfig:
        return cls(
            host=os.getenv("MATES_HOST", "127.0.0.1"),
            port=int(os.getenv("MATES_PORT", "8010")),
            debug_api=_env_bool("MATES_DEBUG_API"),
        )


@dataclass(frozen=True)
class MatesConfig:
    """Root configuration."""

    matrix: MatrixConfig = field(default_factory=MatrixConfig)
    prefs: PrefsConfig = field(default_factory=PrefsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> MatesConfig:
        return cls(
            matrix=MatrixConfig.from_env(),
            prefs=PrefsConfig.from_env(),
            server=ServerConfig.from_env(),
        )


# Singleton: import this wherever you need config
config = MatesConfig.from_env()
