"""
Bootstrap de la colección del ledger: validador (JSON Schema) e índices.

Se ejecuta al inicio para asegurar la colección y su consistencia. Los fallos de
validador/índice se registran como warning y no tumban el arranque.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from pymongo.database import Database
from pymongo.errors import PyMongoError

_log = logging.getLogger("authcore.mongo.bootstrap")

REFRESH_TOKEN_VALIDATOR: Dict[str, Any] = {
    "bsonType": "object",
    "required": ["token_hash", "kind", "owner_id", "token_id", "created_at", "expires_at", "revoked"],
    "properties": {
        "token_hash": {"bsonType": "string", "minLength": 64, "maxLength": 64},
        "kind": {"bsonType": "string", "enum": ["refresh"]},
        "owner_id": {"bsonType": "string"},
        "token_id": {"bsonType": "string"},
        "device_fingerprint": {"bsonType": ["string", "null"]},
        "source_ip": {"bsonType": ["string", "null"]},
        "created_at": {"bsonType": "date"},
        "expires_at": {"bsonType": "date"},
        "revoked": {"bsonType": "bool"},
        "revoked_at": {"bsonType": ["date", "null"]},
    },
    "additionalProperties": True,
}

REFRESH_TOKEN_INDEXES: List[Dict[str, Any]] = [
    {"keys": [("token_hash", 1)], "unique": True, "name": "uniq_token_hash"},
    {"keys": [("owner_id", 1), ("revoked", 1)], "name": "ix_owner_revoked"},
    # TTL: Mongo borra el documento cuando pasa expires_at
    {"keys": [("expires_at", 1)], "expireAfterSeconds": 0, "name": "ttl_expires_at"},
]


def _collmod_or_create(db: Database, name: str, validator: Dict[str, Any]) -> None:
    try:
        db.command({
            "collMod": name,
            "validator": {"$jsonSchema": validator},
            "validationLevel": "moderate",
        })
    except PyMongoError:
        # Si collMod falla (no existe), intenta crear con validator
        try:
            if name not in db.list_collection_names():
                db.create_collection(name, validator={"$jsonSchema": validator})
        except PyMongoError as e:
            _log.warning("No se pudo aplicar validator en '%s': %s", name, e)


def _ensure_indexes(db: Database, name: str, indexes: List[Dict[str, Any]]) -> None:
    coll = db[name]
    for spec in indexes:
        ix = dict(spec)
        keys = ix.pop("keys")
        try:
            coll.create_index(keys, **ix)
        except PyMongoError as e:
            # Ignora fallas de índice (e.g., ya existe con otras opciones)
            _log.warning("No se pudo crear índice en '%s' (%s): %s", name, keys, e)


def ensure_refresh_token_collection(db: Database, name: str = "refresh_token") -> None:
    """
    Garantiza la colección del ledger, su validador y sus índices.
    """
    _collmod_or_create(db, name, REFRESH_TOKEN_VALIDATOR)
    _ensure_indexes(db, name, REFRESH_TOKEN_INDEXES)
    _log.info("Colección '%s' lista", name)
