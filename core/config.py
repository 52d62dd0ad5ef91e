from pathlib import Path
from typing import Literal, Optional
from urllib.parse import urlencode, urlsplit

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Paths
BASE_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    # Origine de la page servie par le backend (scheme + host)
    base_url: str = "http://localhost:8080"
    api_prefix: str = "/api"
    ws_path: str = "/api/ws/logs"
    access_token: Optional[str] = None
    request_timeout: float = 10.0

    reconnect_delay: float = 2.0
    max_reconnect_attempts: int = 5
    poll_interval: float = 3.0
    log_buffer_size: int = 500
    bootstrap_log_limit: int = 100

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def api_base_url(self) -> str:
        return f"{self.base_url}{self.api_prefix}"

    @property
    def ws_url(self) -> str:
        """URL du flux WebSocket, dérivée de l'origine de la page (https -> wss)."""
        parts = urlsplit(self.base_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        url = f"{scheme}://{parts.netloc}{self.ws_path}"
        if self.access_token:
            url += "?" + urlencode({"token": self.access_token})
        return url

    model_config = SettingsConfigDict(
        env_prefix="PANEL_",
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
