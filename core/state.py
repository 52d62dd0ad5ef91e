from collections import deque
from typing import Deque, List, Union

from models.events import CrawlerStatus, LogEntry

MAX_LOG_ENTRIES = 500


class ViewModel:
    """État observable du panneau : statut courant + tampon de logs borné.

    Un seul écrivain (le SessionController), sur une seule boucle asyncio :
    aucun verrou n'est nécessaire.
    """

    def __init__(self, max_logs: int = MAX_LOG_ENTRIES,
                 status: Union[CrawlerStatus, str] = CrawlerStatus.IDLE):
        self.current_status = CrawlerStatus(status)
        self.log_buffer: Deque[LogEntry] = deque(maxlen=max_logs)

    @property
    def max_logs(self) -> int:
        return self.log_buffer.maxlen

    @property
    def logs(self) -> List[LogEntry]:
        return list(self.log_buffer)

    def append_log(self, entry: LogEntry) -> None:
        # deque(maxlen) évince la plus ancienne entrée en cas de dépassement
        self.log_buffer.append(entry)

    def replace_logs(self, entries) -> None:
        self.log_buffer.clear()
        self.log_buffer.extend(entries)

    def clear_logs(self) -> None:
        self.log_buffer.clear()

    def set_status(self, status: Union[CrawlerStatus, str]) -> None:
        self.current_status = CrawlerStatus(status)
