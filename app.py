"""
Crawler Panel — client du tableau de bord du crawler.
Assemble le client HTTP, le flux WebSocket et le SessionController.
"""

import asyncio
from contextlib import asynccontextmanager

from api.client import CrawlerApiClient
from api.websockets import StreamClient
from core.config import Settings, settings as default_settings
from core.logger import get_logger
from core.state import ViewModel
from models.events import Event, LogEntry
from services.session import SessionController

logger = get_logger("app")


@asynccontextmanager
async def panel_session(settings: Settings = None, renderer=None,
                        transport=None, connector=None):
    """Ouvre une session complète : bootstrap, flux WebSocket, polling de secours."""
    settings = settings or default_settings
    logger.info(f"Démarrage du panneau -> {settings.base_url}")

    api = CrawlerApiClient(
        settings.api_base_url,
        timeout=settings.request_timeout,
        token=settings.access_token,
        transport=transport,
    )
    stream = StreamClient(
        settings.ws_url,
        reconnect_delay=settings.reconnect_delay,
        max_reconnect_attempts=settings.max_reconnect_attempts,
        connector=connector,
    )
    session = SessionController(
        api, stream, ViewModel(max_logs=settings.log_buffer_size), renderer=renderer
    )

    try:
        await session.start(settings.bootstrap_log_limit, settings.poll_interval)
        yield session
    finally:
        await session.close()
        await api.aclose()
        logger.info("Arrêt du panneau")


def console_renderer(event: Event) -> None:
    """Affiche chaque événement appliqué via le logger de l'application."""
    if isinstance(event, LogEntry):
        logger.info(f"{event.timestamp} [{event.level.value.upper()}] {event.message}")
    else:
        logger.info(f"== status: {event.status.value} ==")


async def run_forever(settings: Settings = None) -> None:
    async with panel_session(settings, renderer=console_renderer):
        await asyncio.Event().wait()


def main() -> None:
    try:
        asyncio.run(run_forever())
    except KeyboardInterrupt:
        pass
