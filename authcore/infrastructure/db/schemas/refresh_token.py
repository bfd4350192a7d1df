"""
Modelo Pydantic para documentos de la colección `refresh_token` (ledger de revocación).

Sólo se guarda el hash del token firmado; el token en crudo nunca se persiste.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from authcore.core.time import as_utc


class RefreshTokenModel(BaseModel):
    token_hash: str  # sha256 hex del JWT completo
    kind: str = "refresh"
    owner_id: str
    token_id: str
    device_fingerprint: Optional[str] = None
    source_ip: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    revoked: bool = False
    revoked_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "RefreshTokenModel":
        data = {k: v for k, v in doc.items() if k != "_id"}
        for key in ("created_at", "expires_at", "revoked_at"):
            if isinstance(data.get(key), datetime):
                data[key] = as_utc(data[key])
        return cls(**data)

    def to_doc(self) -> Dict[str, Any]:
        return self.model_dump()
