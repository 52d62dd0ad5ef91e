import asyncio
from datetime import datetime
from typing import Callable, Optional, Union

from api.client import ApiError, CrawlerApiClient
from api.websockets import StreamClient
from core.config import settings
from core.logger import get_logger
from core.state import ViewModel
from models.events import CrawlerStatus, Event, LogEntry, LogLevel, StatusUpdate
from models.schemas import CrawlerConfig

logger = get_logger("services.session")

Renderer = Callable[[Event], None]


def _now() -> str:
    return datetime.now().strftime("%H:%M:%S")


class SessionController:
    """Maintient le ViewModel à jour à partir du plan de contrôle et du flux WebSocket.

    Seul écrivain du ViewModel. Tous les événements (bootstrap, flux, polling,
    actions locales) passent par apply_log_event / apply_status_event, puis sont
    transmis au renderer s'il y en a un.
    """

    def __init__(self, api: CrawlerApiClient, stream: StreamClient,
                 view_model: ViewModel = None, renderer: Optional[Renderer] = None):
        self.api = api
        self.stream = stream
        self.view_model = view_model or ViewModel(max_logs=settings.log_buffer_size)
        self.renderer = renderer
        self._poll_task: Optional[asyncio.Task] = None

    async def start(self, log_limit: int = None, poll_interval: float = None) -> None:
        self.stream.on_log(self.apply_log_event)
        self.stream.on_status(self.apply_status_event)
        await self.bootstrap(log_limit)
        self.stream.connect()
        self.start_polling(poll_interval)

    async def close(self) -> None:
        self.stop_polling()
        await self.stream.disconnect()

    async def bootstrap(self, log_limit: int = None) -> None:
        """Charge le statut courant et l'historique récent avant que le flux ne soit actif.

        Les deux appels sont indépendants : l'échec de l'un n'empêche pas l'autre.
        """
        limit = settings.bootstrap_log_limit if log_limit is None else log_limit

        try:
            status = await self.api.get_status()
            self.apply_status_event(status)
        except ApiError as e:
            logger.error(f"Bootstrap: impossible de récupérer le statut: {e}")

        try:
            logs = await self.api.get_logs(limit)
        except ApiError as e:
            logger.error(f"Bootstrap: impossible de récupérer les logs: {e}")
            return

        if logs:
            self.view_model.clear_logs()
            for entry in logs:
                self.apply_log_event(entry)
        logger.info(f"Bootstrap terminé: status={self.view_model.current_status.value}, logs={len(logs)}")

    def apply_log_event(self, entry: LogEntry) -> None:
        self.view_model.append_log(entry)
        self._render(entry)

    def apply_status_event(self, update: Union[StatusUpdate, CrawlerStatus, str]) -> None:
        if not isinstance(update, StatusUpdate):
            update = StatusUpdate(status=update)
        previous = self.view_model.current_status
        self.view_model.set_status(update.status)
        if previous != update.status:
            logger.info(f"Statut: '{previous.value}' -> '{update.status.value}'")
        self._render(update)

    def clear_logs(self) -> None:
        self.view_model.clear_logs()

    def start_polling(self, interval: float = None) -> asyncio.Task:
        """Polling de secours : interroge /crawler/status tant que le flux est coupé."""
        self.stop_polling()
        interval = settings.poll_interval if interval is None else interval
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll_loop(interval), name="status-poll"
        )
        return self._poll_task

    def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _poll_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            if self.stream.is_connected():
                continue
            try:
                status = await self.api.get_status()
            except ApiError as e:
                logger.error(f"Polling du statut échoué: {e}")
                continue
            if self.stream.is_connected():
                # le flux est revenu pendant la requête : son statut est plus récent
                continue
            self.apply_status_event(status)

    async def start_crawler(self, config: CrawlerConfig) -> bool:
        try:
            await self.api.start_crawler(config)
        except ApiError as e:
            self._show_error(e.message)
            return False
        self.apply_status_event(CrawlerStatus.RUNNING)
        self.apply_log_event(LogEntry(timestamp=_now(), level=LogLevel.SUCCESS,
                                      message="Crawler started successfully"))
        return True

    async def stop_crawler(self) -> bool:
        self.apply_status_event(CrawlerStatus.STOPPING)
        try:
            await self.api.stop_crawler()
        except ApiError as e:
            self._show_error(e.message)
            return False
        self.apply_log_event(LogEntry(timestamp=_now(), level=LogLevel.WARNING,
                                      message="Stopping crawler..."))
        return True

    def _show_error(self, message: str) -> None:
        self.apply_log_event(LogEntry(timestamp=_now(), level=LogLevel.ERROR, message=message))

    def _render(self, event: Event) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer(event)
        except Exception:
            logger.exception(f"Erreur du renderer sur {type(event).__name__}")
