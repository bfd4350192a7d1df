"""Cliente MongoDB (pymongo) del núcleo de sesiones.

Un único cliente por proceso; `init_mongo()` se llama una vez al arrancar.
"""
from __future__ import annotations

import logging
from typing import Optional

import certifi
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from authcore.core.config import Settings, settings as default_settings

_log = logging.getLogger("authcore.mongo")

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def _client_kwargs(cfg: Settings) -> dict:
    # Ajustes conservadores: 15s y CA de certifi incluso con SRV
    kwargs = dict(serverSelectionTimeoutMS=15000)
    uri = cfg.mongo_uri
    if uri.startswith("mongodb+srv://"):
        # SRV ya implica TLS; proveemos CA bundle para robustez
        kwargs["tlsCAFile"] = certifi.where()
    elif not uri.startswith("mongodb://localhost") and not uri.startswith("mongodb://127.0.0.1"):
        kwargs["tls"] = True
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsAllowInvalidCertificates"] = bool(cfg.mongo_tls_insecure)
        kwargs["tlsAllowInvalidHostnames"] = bool(cfg.mongo_tls_allow_invalid_hostnames)
    return kwargs


def init_mongo(cfg: Settings | None = None) -> bool:
    """
    Inicializa el cliente y valida conexión (ping). Devuelve True si quedó listo.
    """
    global _client, _db
    cfg = cfg or default_settings
    try:
        _client = MongoClient(cfg.mongo_uri, **_client_kwargs(cfg))
        _client.admin.command("ping")
        _db = _client[cfg.mongo_db]
        _log.info("Mongo conectado db=%s", cfg.mongo_db)
        return True
    except ServerSelectionTimeoutError as e:
        _log.warning("Mongo no accesible (timeout): %s", e)
    except PyMongoError as e:
        _log.warning("Error de conexión a Mongo: %s", e)
    _client = None
    _db = None
    return False


def get_db() -> Database:
    """
    Devuelve la referencia a la base de datos.
    Úsalo en repositorios/servicios, no en routers.
    """
    if _db is None:
        raise RuntimeError("Mongo no inicializado. Intenta más tarde.")
    return _db


def get_collection(name: str) -> Collection:
    return get_db()[name]


def db_ready() -> bool:
    return _db is not None
