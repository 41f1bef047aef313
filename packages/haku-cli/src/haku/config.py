"""
haku client configuration

Settings are loaded from:
1. Environment variables (prefixed with HAKU_)
2. ~/.haku/.env file

Key settings:
- HAKU_API_URL: Backend server URL (default: http://localhost:8000)
- HAKU_TOKEN: Bearer token returned by `haku login`
- HAKU_STATE_PATH: JSON file holding the durable client state
- HAKU_WORKER_PORT: Port of the local offline worker
"""

import logging
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

HAKU_HOME = Path.home() / ".haku"


class Settings(BaseSettings):
    """haku client settings."""

    api_url: str = "http://localhost:8000"
    token: str | None = None
    state_path: Path = HAKU_HOME / "state.json"
    worker_port: int = 8766
    timeout: float = 10.0

    model_config = SettingsConfigDict(
        env_prefix="HAKU_",
        env_file=HAKU_HOME / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_logged_in(self) -> bool:
        return bool(self.token)


def save_token(token: str | None, env_file: Path = HAKU_HOME / ".env") -> None:
    """Write (or clear) ``HAKU_TOKEN`` in the env file, keeping other lines."""
    env_file.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    if env_file.exists():
        lines = [
            line
            for line in env_file.read_text(encoding="utf-8").splitlines()
            if not line.startswith("HAKU_TOKEN=")
        ]
    if token:
        lines.append(f"HAKU_TOKEN={token}")
    env_file.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    logger.debug("Updated token in %s", env_file)
