"""Runtime settings, read from ``MINESOCKET_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

ENV_PREFIX = "MINESOCKET_"


@dataclass(frozen=True)
class Settings:
    auth_key: str = ""
    session: str = ""
    user_id: str = ""
    server: str = "los1"
    domain: str = "minesweeper.online"
    region: str = "CA"
    handshake_timeout: float = 10.0
    ping_interval: float = 2.0
    capture_url: Optional[str] = None

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "Settings":
        """Build settings from the environment; non-None ``overrides`` win."""

        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            values[f.name] = float(raw) if f.name.endswith(("_timeout", "_interval")) else raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def missing_credentials(self) -> list[str]:
        return [
            name for name in ("auth_key", "session", "user_id") if not getattr(self, name)
        ]

    @property
    def auth_params(self) -> Dict[str, str]:
        return {
            "authKey": self.auth_key,
            "session": self.session,
            "userId": self.user_id,
        }

    @property
    def polling_url(self) -> str:
        return f"https://{self.server}.{self.domain}/mine-websocket/"

    def websocket_url(self, sid: str) -> str:
        query = urlencode({**self.auth_params, "transport": "websocket", "sid": sid})
        return f"wss://{self.server}.{self.domain}/mine-websocket/?{query}"
