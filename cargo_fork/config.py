"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from cargo_fork.exceptions import ConfigError

DEFAULT_REGISTRY_API = "https://crates.io/api/v1"
DEFAULT_DOWNLOAD_BASE = "https://static.crates.io/crates"
DEFAULT_REGISTRY_NAME = "crates-io"
DEFAULT_HTTP_TIMEOUT = 30.0


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Registry endpoints, timeouts and executables.

    Environment variables:
        CARGO_FORK_REGISTRY_API: crates.io API base (default: https://crates.io/api/v1)
        CARGO_FORK_DOWNLOAD_BASE: .crate download base (default: https://static.crates.io/crates)
        CARGO_FORK_REGISTRY_NAME: name of the [patch.<name>] table (default: crates-io)
        CARGO_FORK_HTTP_TIMEOUT: HTTP timeout in seconds (default: 30)
        CARGO_FORK_CARGO: cargo executable (default: cargo)
        CARGO_FORK_GIT: git executable (default: git)
    """

    registry_api: str = DEFAULT_REGISTRY_API
    download_base: str = DEFAULT_DOWNLOAD_BASE
    registry_name: str = DEFAULT_REGISTRY_NAME
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    cargo: str = "cargo"
    git: str = "git"

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            registry_api=os.environ.get("CARGO_FORK_REGISTRY_API", DEFAULT_REGISTRY_API).rstrip("/"),
            download_base=os.environ.get("CARGO_FORK_DOWNLOAD_BASE", DEFAULT_DOWNLOAD_BASE).rstrip(
                "/"
            ),
            registry_name=os.environ.get("CARGO_FORK_REGISTRY_NAME", DEFAULT_REGISTRY_NAME),
            http_timeout=_env_float("CARGO_FORK_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            cargo=os.environ.get("CARGO_FORK_CARGO", "cargo"),
            git=os.environ.get("CARGO_FORK_GIT", "git"),
        )
