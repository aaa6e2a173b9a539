"""
This module resolves connection settings for the langchat backend.
It handles the base path override from environment variables or direct input.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_API_BASE_URL = "LANGCHAT_API_BASE_URL"
ENV_ORIGIN = "LANGCHAT_ORIGIN"
ENV_HTTP_DEBUG = "LANGCHAT_HTTP_DEBUG"

DEFAULT_API_BASE_URL = "/api"
DEFAULT_ORIGIN = "http://localhost:8080"
DEFAULT_TIMEOUT_S = 120.0


@dataclass(frozen=True, slots=True)
class HttpConfig:
    """
    Connection settings shared by every call made against the backend.
    `base_url` is always absolute and never ends with a slash.
    """

    base_url: str
    timeout_s: float = DEFAULT_TIMEOUT_S

    @staticmethod
    def from_env_or_value(
        base_url: str | None = None,
        *,
        origin: str | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> HttpConfig:
        """
        Create an HttpConfig from explicit values or environment variables.

        Args:
            base_url: Optional base path ("/api") or absolute URL. Falls back to
                LANGCHAT_API_BASE_URL, then to "/api".
            origin: Scheme and host used when the base path is relative. Falls back
                to LANGCHAT_ORIGIN, then to "http://localhost:8080".
            timeout_s: Timeout applied to every request, in seconds.

        Returns:
            An initialized HttpConfig with an absolute base URL.

        Raises:
            ValueError: If the resolved base URL or origin is blank.
        """
        base = (base_url or os.getenv(ENV_API_BASE_URL) or DEFAULT_API_BASE_URL).strip()
        if not base:
            raise ValueError(
                "Base URL missing. Define LANGCHAT_API_BASE_URL in environment or pass base_url value"
            )

        if "://" not in base:
            host = (origin or os.getenv(ENV_ORIGIN) or DEFAULT_ORIGIN).strip()
            if not host:
                raise ValueError("Origin missing. Define LANGCHAT_ORIGIN in environment or pass origin value")
            base = f"{host.rstrip('/')}/{base.lstrip('/')}"

        return HttpConfig(base_url=base.rstrip("/"), timeout_s=timeout_s)


def http_debug_enabled() -> bool:
    return os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}
