"""
Persistencia del ledger de refresh tokens.

Dos implementaciones del mismo contrato (`RefreshTokenStore`):
- `MongoRefreshTokenStore`: colección pymongo, actualizaciones atómicas por documento.
- `InMemoryRefreshTokenStore`: para tests y desarrollo local.

Los filtros de `update_one`/`update_many` son de igualdad simple sobre campos
del documento (p.ej. {"owner_id": "u1", "revoked": False}).
"""
from __future__ import annotations

import copy
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from authcore.core.time import as_utc

Doc = Dict[str, Any]


class RefreshTokenStore(Protocol):
    def insert_if_absent(self, token_hash: str, doc: Doc) -> bool: ...

    def find_by_hash(self, token_hash: str) -> Optional[Doc]: ...

    def find_by_owner(self, owner_id: str) -> List[Doc]: ...

    def update_one(self, filter_: Doc, changes: Doc) -> int: ...

    def update_many(self, filter_: Doc, changes: Doc) -> int: ...

    def delete_expired(self, now: datetime) -> int: ...


class MongoRefreshTokenStore:
    def __init__(self, collection: Collection):
        self.coll = collection

    def insert_if_absent(self, token_hash: str, doc: Doc) -> bool:
        """Inserta sólo si no existe el hash. True si se creó el documento."""
        data = dict(doc, token_hash=token_hash)
        try:
            res = self.coll.update_one({"token_hash": token_hash}, {"$setOnInsert": data}, upsert=True)
        except DuplicateKeyError:
            # Otro upsert concurrente ganó la carrera: ya existe
            return False
        return res.upserted_id is not None

    def find_by_hash(self, token_hash: str) -> Optional[Doc]:
        return self.coll.find_one({"token_hash": token_hash})

    def find_by_owner(self, owner_id: str) -> List[Doc]:
        return list(self.coll.find({"owner_id": owner_id}).sort("created_at", -1))

    def update_one(self, filter_: Doc, changes: Doc) -> int:
        doc = self.coll.find_one_and_update(
            filter_, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        return 0 if doc is None else 1

    def update_many(self, filter_: Doc, changes: Doc) -> int:
        res = self.coll.update_many(filter_, {"$set": changes})
        return res.modified_count

    def delete_expired(self, now: datetime) -> int:
        res = self.coll.delete_many({"expires_at": {"$lte": as_utc(now)}})
        return res.deleted_count


class InMemoryRefreshTokenStore:
    def __init__(self) -> None:
        self._docs: Dict[str, Doc] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _matches(doc: Doc, filter_: Doc) -> bool:
        return all(doc.get(k) == v for k, v in filter_.items())

    def insert_if_absent(self, token_hash: str, doc: Doc) -> bool:
        with self._lock:
            if token_hash in self._docs:
                return False
            self._docs[token_hash] = copy.deepcopy(dict(doc, token_hash=token_hash))
            return True

    def find_by_hash(self, token_hash: str) -> Optional[Doc]:
        with self._lock:
            doc = self._docs.get(token_hash)
            return copy.deepcopy(doc) if doc is not None else None

    def find_by_owner(self, owner_id: str) -> List[Doc]:
        with self._lock:
            docs = [copy.deepcopy(d) for d in self._docs.values() if d.get("owner_id") == owner_id]
        return sorted(docs, key=lambda d: d["created_at"], reverse=True)

    def update_one(self, filter_: Doc, changes: Doc) -> int:
        with self._lock:
            for doc in self._docs.values():
                if self._matches(doc, filter_):
                    doc.update(changes)
                    return 1
            return 0

    def update_many(self, filter_: Doc, changes: Doc) -> int:
        with self._lock:
            n = 0
            for doc in self._docs.values():
                if self._matches(doc, filter_):
                    doc.update(changes)
                    n += 1
            return n

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [h for h, d in self._docs.items() if as_utc(d["expires_at"]) <= as_utc(now)]
            for h in expired:
                del self._docs[h]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)
