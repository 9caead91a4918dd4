"""Client configuration — environment defaults, overridable per invocation."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_SERVER_URL = "http://localhost:8000"


@dataclass
class ClientConfig:
    server_url: str = DEFAULT_SERVER_URL
    api_key: str | None = None
    timeout: float = 120.0

    @classmethod
    def from_env(cls, *, server_url: str | None = None, api_key: str | None = None) -> ClientConfig:
        """Explicit arguments win over ``PACKSAFE_SERVER_URL`` / ``PACKSAFE_API_KEY``."""
        return cls(
            server_url=(server_url or os.environ.get("PACKSAFE_SERVER_URL") or DEFAULT_SERVER_URL)
            .rstrip("/"),
            api_key=api_key or os.environ.get("PACKSAFE_API_KEY") or None,
            timeout=float(os.environ.get("PACKSAFE_CLIENT_TIMEOUT", 120.0)),
        )
