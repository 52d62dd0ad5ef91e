import asyncio
from typing import Any, Awaitable, Callable, Optional

import websockets
from pydantic import ValidationError
from websockets.exceptions import ConnectionClosed

from core.config import settings
from core.logger import get_logger
from models.events import ConnectionState, Frame, LogEntry, StatusUpdate

logger = get_logger("api.websockets")

Connector = Callable[[str], Awaitable[Any]]
LogCallback = Callable[[LogEntry], None]
StatusCallback = Callable[[StatusUpdate], None]


class StreamClient:
    """Connexion WebSocket au flux d'événements du backend (/api/ws/logs).

    - reconnexion automatique à délai fixe, bornée à `max_reconnect_attempts`
    - démultiplexage des frames {type, data} vers on_log / on_status
    - un seul abonné par type d'événement (le dernier enregistré gagne)

    Chaque appel à connect() ouvre une nouvelle génération ; seuls les timers
    de la génération courante peuvent relancer une connexion, ce qui empêche
    un timer orphelin de ressusciter la connexion après disconnect().
    """

    def __init__(self, url: str = None, *, reconnect_delay: float = None,
                 max_reconnect_attempts: int = None, connector: Connector = None):
        self.url = url or settings.ws_url
        self.reconnect_delay = (
            settings.reconnect_delay if reconnect_delay is None else reconnect_delay
        )
        self.max_reconnect_attempts = (
            settings.max_reconnect_attempts if max_reconnect_attempts is None
            else max_reconnect_attempts
        )
        self.reconnect_attempts = 0
        self.state = ConnectionState.DISCONNECTED
        self.generation = 0

        self._connector = connector or websockets.connect
        self._ws = None
        self._conn_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._on_log: Optional[LogCallback] = None
        self._on_status: Optional[StatusCallback] = None

    def on_log(self, callback: LogCallback) -> None:
        self._on_log = callback

    def on_status(self, callback: StatusCallback) -> None:
        self._on_status = callback

    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def connect(self) -> None:
        """Lance la connexion en tâche de fond ; le résultat s'observe via les callbacks."""
        self.generation += 1
        generation = self.generation
        self.state = ConnectionState.CONNECTING
        logger.info(f"[WS] Connexion à {self.url} (génération {generation})")
        self._conn_task = asyncio.get_running_loop().create_task(
            self._run(generation), name=f"stream-client-{generation}"
        )

    async def disconnect(self) -> None:
        """Fermeture volontaire : n'entraîne jamais de reconnexion."""
        self.generation += 1
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        current = asyncio.current_task()

        reconnect_task, self._reconnect_task = self._reconnect_task, None
        if reconnect_task is not None and reconnect_task is not current and not reconnect_task.done():
            logger.info("[WS] Reconnexion en attente annulée")
            reconnect_task.cancel()

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"[WS] Erreur à la fermeture du transport: {e}")

        conn_task, self._conn_task = self._conn_task, None
        if conn_task is not None and conn_task is not current and not conn_task.done():
            conn_task.cancel()
            await asyncio.gather(conn_task, return_exceptions=True)

        logger.info("[WS] Déconnecté volontairement")

    async def _run(self, generation: int) -> None:
        try:
            ws = await self._connector(self.url)
        except Exception as e:
            logger.error(f"[WS] Échec de connexion: {type(e).__name__}: {e}")
            self._on_transport_lost(generation)
            return

        if generation != self.generation:
            # disconnect() ou connect() appelé pendant le handshake
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"[WS] Erreur à la fermeture du transport périmé: {e}")
            return

        self._ws = ws
        self.state = ConnectionState.CONNECTED
        self.reconnect_attempts = 0
        logger.info("[WS] Connecté")

        try:
            async for message in ws:
                self._handle_message(message)
        except ConnectionClosed as e:
            logger.warning(f"[WS] Connexion perdue: {e}")
        except Exception as e:
            logger.error(f"[WS] Erreur transport: {type(e).__name__}: {e}")
        finally:
            if self._ws is ws:
                self._ws = None

        self._on_transport_lost(generation)

    def _on_transport_lost(self, generation: int) -> None:
        if generation != self.generation or self.state == ConnectionState.DISCONNECTED:
            return
        self.state = ConnectionState.DISCONNECTED
        logger.info("[WS] Déconnecté")
        self._schedule_reconnect(generation)

    def _schedule_reconnect(self, generation: int) -> None:
        if self.reconnect_attempts >= self.max_reconnect_attempts:
            logger.error(
                f"[WS] Nombre maximal de reconnexions atteint ({self.max_reconnect_attempts}), abandon"
            )
            return

        logger.info(
            f"[WS] Reconnexion dans {self.reconnect_delay}s "
            f"(tentative {self.reconnect_attempts + 1}/{self.max_reconnect_attempts})"
        )
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect_after(generation), name=f"stream-reconnect-{generation}"
        )

    async def _reconnect_after(self, generation: int) -> None:
        await asyncio.sleep(self.reconnect_delay)
        if generation != self.generation:
            logger.debug(f"[WS] Timer de reconnexion périmé (génération {generation}) ignoré")
            return
        self.reconnect_attempts += 1
        self.connect()

    def _handle_message(self, message) -> None:
        """Décode une frame et la route ; une frame invalide est ignorée individuellement."""
        if isinstance(message, (bytes, bytearray)):
            try:
                message = message.decode("utf-8")
            except UnicodeDecodeError:
                logger.error("[WS] Frame binaire non UTF-8 ignorée")
                return

        try:
            frame = Frame.model_validate_json(message)
        except ValidationError as e:
            logger.error(f"[WS] Frame invalide ignorée ({e.error_count()} erreur(s)): {message[:200]!r}")
            return

        try:
            if frame.type == "log":
                event, callback = LogEntry.model_validate(frame.data), self._on_log
            else:
                event, callback = StatusUpdate.model_validate(frame.data), self._on_status
        except ValidationError as e:
            logger.error(f"[WS] Payload '{frame.type}' invalide ignoré: {e.errors()[0]['msg']}")
            return

        if callback is None:
            logger.debug(f"[WS] Aucun abonné pour '{frame.type}', frame ignorée")
            return

        try:
            callback(event)
        except Exception:
            logger.exception(f"[WS] Erreur dans le callback '{frame.type}'")
