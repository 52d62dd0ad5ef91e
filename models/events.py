from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"


class CrawlerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class LogEntry(BaseModel):
    """Une ligne de log telle qu'émise par le backend."""
    model_config = ConfigDict(frozen=True)

    timestamp: str
    level: LogLevel = LogLevel.INFO
    message: str

    @field_validator("level", mode="before")
    @classmethod
    def default_level(cls, v):
        # null ou vide -> info, comme un niveau absent
        if v is None or v == "":
            return LogLevel.INFO
        return v


class StatusUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: CrawlerStatus

    @model_validator(mode="before")
    @classmethod
    def coerce_bare_status(cls, data: Any):
        # Certains backends envoient "data": "running" au lieu de {"status": ...}
        if isinstance(data, (str, CrawlerStatus)):
            return {"status": data}
        return data


class Frame(BaseModel):
    """Enveloppe d'un message reçu sur le flux : {type, data}."""
    type: Literal["log", "status"]
    data: Any = None


Event = Union[LogEntry, StatusUpdate]
