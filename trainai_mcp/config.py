"""Environment-sourced settings for the MCP bridge."""

import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_API_BASE = "https://trainai-tools.onrender.com"


@dataclass(frozen=True)
class Settings:
    api_base: str = DEFAULT_API_BASE
    host: str = "0.0.0.0"
    port: int = 3000
    timeout: float = 30.0
    log_level: str = "INFO"
    log_file: str | None = "logs/trainai-mcp.log"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Read settings from ``environ`` (defaults to ``os.environ``).

        Raises ``ValueError`` when PORT or TRAINAI_TIMEOUT is not a number.
        """
        env = os.environ if environ is None else environ
        log_file = env.get("LOG_FILE", cls.log_file)
        return cls(
            api_base=(env.get("TRAINAI_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            host=env.get("HOST") or cls.host,
            port=int(env.get("PORT") or cls.port),
            timeout=float(env.get("TRAINAI_TIMEOUT") or cls.timeout),
            log_level=(env.get("LOG_LEVEL") or cls.log_level).upper(),
            log_file=log_file or None,
        )
