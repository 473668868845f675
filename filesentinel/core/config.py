"""Audit configuration, loaded from the environment and overridable by the CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass

from filesentinel.core.exceptions import ConfigError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_MAX_CONCURRENCY = 5

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


@dataclass
class AuditConfig:
    """Options for a single audit run."""

    token: str
    api_url: str = DEFAULT_API_URL
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    dedupe: bool = True
    dry_run: bool = False

    def __post_init__(self) -> None:
        if not self.token or not self.token.strip():
            raise ConfigError("a GitHub API token is required (set GITHUB_TOKEN or pass --token)")
        if self.max_concurrency < 1:
            raise ConfigError(f"max_concurrency must be >= 1, got {self.max_concurrency}")

    @classmethod
    def from_env(cls, **overrides: object) -> AuditConfig:
        """Build a config from environment variables.

        Reads:
            GITHUB_TOKEN                  — API token (required)
            FILESENTINEL_API_URL          — API base URL
            FILESENTINEL_MAX_CONCURRENCY  — dependencies checked in parallel
            FILESENTINEL_DEDUPE           — skip filing when an issue already exists
            FILESENTINEL_DRY_RUN          — never file issues

        Keyword *overrides* that are not None replace the environment values.
        """
        values: dict[str, object] = {
            "token": os.environ.get("GITHUB_TOKEN", ""),
            "api_url": os.environ.get("FILESENTINEL_API_URL", DEFAULT_API_URL),
            "max_concurrency": _env_int(
                "FILESENTINEL_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY
            ),
            "dedupe": _env_bool("FILESENTINEL_DEDUPE", True),
            "dry_run": _env_bool("FILESENTINEL_DRY_RUN", False),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean flag, got {raw!r}")
