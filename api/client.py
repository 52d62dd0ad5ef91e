"""
Client HTTP du plan de contrôle (start / stop / status / logs).
Chaque appel est une simple requête/réponse JSON vers le backend du crawler.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from core.config import settings
from core.logger import get_logger
from models.events import LogEntry, StatusUpdate
from models.schemas import CrawlerConfig

logger = get_logger("api.client")


class ApiError(Exception):
    """Échec d'un appel au plan de contrôle (HTTP non-2xx ou erreur réseau)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class CrawlerApiClient:
    def __init__(self, base_url: str = None, *, timeout: float = None,
                 token: Optional[str] = None, transport: httpx.AsyncBaseTransport = None):
        headers = {}
        token = token if token is not None else settings.access_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout if timeout is not None else settings.request_timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, default_error: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} a échoué: {type(e).__name__}: {e}")
            raise ApiError(f"{default_error}: {e}") from e

        if not response.is_success:
            detail = None
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get("detail") or body.get("error")
            except ValueError:
                pass
            logger.warning(f"{method} {path} -> HTTP {response.status_code} ({detail or default_error})")
            raise ApiError(str(detail) if detail else default_error, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"{default_error}: invalid JSON response", response.status_code) from e

    async def start_crawler(self, config: CrawlerConfig) -> Dict[str, Any]:
        """Démarre le crawler avec la configuration donnée."""
        return await self._request(
            "POST", "/crawler/start", "Failed to start crawler",
            json=config.model_dump(),
        )

    async def stop_crawler(self) -> Dict[str, Any]:
        return await self._request("POST", "/crawler/stop", "Failed to stop crawler")

    async def get_status(self) -> StatusUpdate:
        data = await self._request("GET", "/crawler/status", "Failed to fetch status")
        try:
            return StatusUpdate.model_validate(data)
        except ValidationError as e:
            raise ApiError(f"Unexpected status payload: {data!r}") from e

    async def get_logs(self, limit: int = 100) -> List[LogEntry]:
        """Retourne les `limit` dernières entrées de log connues du backend."""
        data = await self._request(
            "GET", "/crawler/logs", "Failed to fetch logs", params={"limit": limit}
        )
        if not isinstance(data, dict):
            raise ApiError(f"Unexpected logs payload: {data!r}")
        items = data.get("logs")
        if items is None:
            return []
        if not isinstance(items, list):
            raise ApiError(f"Unexpected logs payload: {items!r}")

        entries = []
        for item in items:
            try:
                entries.append(LogEntry.model_validate(item))
            except ValidationError as e:
                # une entrée invalide est ignorée, pas tout l'historique
                logger.warning(f"Entrée de log invalide ignorée ({e.error_count()} erreur(s)): {item!r}")
        return entries

    async def get_platforms(self) -> Dict[str, Any]:
        return await self._request("GET", "/config/platforms", "Failed to fetch platforms")

    async def get_config_options(self) -> Dict[str, Any]:
        return await self._request("GET", "/config/options", "Failed to fetch config options")

    async def check_environment(self) -> Dict[str, Any]:
        return await self._request("GET", "/env/check", "Environment check failed")

    async def health_check(self) -> bool:
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError as e:
            logger.debug(f"Health check injoignable: {e}")
            return False
        return response.is_success
