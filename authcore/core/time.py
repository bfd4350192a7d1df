"""
Reloj del núcleo de sesiones.

Todos los servicios reciben un `Clock` (callable sin argumentos que devuelve un
datetime aware en UTC); en tests se sustituye por un reloj controlable.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # Asegura timezone-aware en UTC (Mongo devuelve datetimes naive)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_epoch(dt: datetime) -> int:
    return int(as_utc(dt).timestamp())


def from_epoch(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
