"""
Ledger de revocación de refresh tokens.

Mapea sha256(token) -> estado (activo/revocado), dueño, binding y expiración.
Las revocaciones son monótonas (revoked False -> True) y nunca se revierten;
los registros sólo desaparecen por expiración (`purge_expired` o índice TTL).
"""
from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

from authcore.core.time import Clock, as_utc, now_utc
from authcore.infrastructure.db.schemas.refresh_token import RefreshTokenModel
from authcore.repositories.refresh_token_repo import RefreshTokenStore

_log = logging.getLogger("authcore.ledger")


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class RevocationLedger:
    def __init__(self, store: RefreshTokenStore, clock: Clock = now_utc):
        self.store = store
        self.clock = clock

    def record(
        self,
        token_hash: str,
        owner_id: str,
        binding: Mapping[str, Any],
        expires_at: datetime,
        *,
        token_id: str,
    ) -> bool:
        """
        Registra un refresh token recién emitido. Idempotente: si el hash ya
        existe no hace nada y devuelve False. Los errores del store se propagan.
        """
        doc = RefreshTokenModel(
            token_hash=token_hash,
            owner_id=owner_id,
            token_id=token_id,
            device_fingerprint=binding.get("device_fingerprint"),
            source_ip=binding.get("source_ip"),
            created_at=self.clock(),
            expires_at=as_utc(expires_at),
        ).to_doc()
        created = self.store.insert_if_absent(token_hash, doc)
        if not created:
            _log.debug("Refresh ya registrado token_id=%s", token_id)
        return created

    def get(self, token_hash: str) -> Optional[RefreshTokenModel]:
        doc = self.store.find_by_hash(token_hash)
        return RefreshTokenModel.from_doc(doc) if doc else None

    def _active(self, record: Optional[RefreshTokenModel]) -> bool:
        # La expiración guardada se comprueba aparte de la del JWT
        return record is not None and not record.revoked and record.expires_at > self.clock()

    def active_record(self, token_hash: str) -> Optional[RefreshTokenModel]:
        record = self.get(token_hash)
        return record if self._active(record) else None

    def is_active(self, token_hash: str) -> bool:
        return self.active_record(token_hash) is not None

    def revoke(self, token_hash: str) -> bool:
        """
        Marca el registro como revocado. Hash desconocido o ya revocado: no-op.
        Devuelve True si este llamado hizo la transición.
        """
        n = self.store.update_one(
            {"token_hash": token_hash, "revoked": False},
            {"revoked": True, "revoked_at": self.clock()},
        )
        if not n:
            _log.info("Revocación sin efecto (desconocido o ya revocado)")
        return bool(n)

    def revoke_all(self, owner_id: str) -> int:
        """
        "Cerrar sesión en todos lados": una sola actualización acotada por dueño.
        """
        n = self.store.update_many(
            {"owner_id": owner_id, "revoked": False},
            {"revoked": True, "revoked_at": self.clock()},
        )
        _log.info("Revocados %s refresh tokens owner_id=%s", n, owner_id)
        return n

    def list_active(self, owner_id: str) -> List[RefreshTokenModel]:
        records = [RefreshTokenModel.from_doc(d) for d in self.store.find_by_owner(owner_id)]
        return [r for r in records if self._active(r)]

    def purge_expired(self) -> int:
        n = self.store.delete_expired(self.clock())
        _log.info("Purgados %s registros expirados", n)
        return n
