"""
Esquemas Pydantic del dominio de tokens.

- `Claims`: datos firmados dentro del token (nunca se persisten como fila).
- `RequestContext`: atributos de la petición usados para binding.
- `Subject`: lo mínimo que aporta la fuente de identidad.
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from authcore.core.errors import TokenErrorKind


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    VERIFICATION = "verification"
    RESET = "reset"


# Kinds que admiten claims de binding
BINDABLE_KINDS = frozenset({TokenKind.ACCESS, TokenKind.REFRESH})


class Subject(BaseModel):
    """Identidad del usuario: `email` y `role` sólo se usan en access/verification/reset."""

    subject_id: str
    email: Optional[str] = None
    role: Optional[str] = None


class RequestContext(BaseModel):
    """Contexto por petición (lo provee la capa HTTP). Ambos campos opcionales."""

    model_config = ConfigDict(frozen=True)

    device_fingerprint: Optional[str] = None
    source_ip: Optional[str] = None


class Claims(BaseModel):
    """Claim set verificado.

    Nombres Python; el alias es el nombre del claim dentro del JWT.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    subject_id: str = Field(alias="sub")
    kind: TokenKind = Field(alias="type")
    token_id: str = Field(alias="jti")
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")
    issuer: str = Field(alias="iss")
    audience: str = Field(alias="aud")
    email: Optional[str] = None
    role: Optional[str] = None
    device_fingerprint: Optional[str] = Field(default=None, alias="dfp")
    source_ip: Optional[str] = Field(default=None, alias="sip")


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenMetadata(BaseModel):
    """Resultado de `introspect`: claims decodificados SIN verificar firma.

    Sólo para soporte/depuración; nunca autoriza una acción.
    """

    verified: bool = False
    kind: Optional[str] = None
    subject_id: Optional[str] = None
    token_id: Optional[str] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    seconds_remaining: Optional[int] = None
    device_bound: bool = False
    ip_bound: bool = False


class VerificationResult(BaseModel):
    """Resultado etiquetado de `try_verify`: o hay `claims` o hay `error_kind`."""

    claims: Optional[Claims] = None
    error_kind: Optional[TokenErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.claims is not None


class RotationDecision(str, Enum):
    DISABLED = "disabled"
    NOT_DUE = "not_due"
    DUE = "due"
