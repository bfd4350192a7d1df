"""
Taxonomía de errores de tokens.

Cada excepción lleva un `kind` (TokenErrorKind) como valor de primera clase:
los logs y métricas usan el kind específico, pero hacia el cliente todas se
presentan con el mismo mensaje opaco (`public_message`).
"""
from enum import Enum
from typing import Optional


class TokenErrorKind(str, Enum):
    EXPIRED = "expired"
    TAMPERED = "tampered"
    NOT_YET_VALID = "not_yet_valid"
    WRONG_KIND = "wrong_kind"
    BINDING_MISMATCH = "binding_mismatch"
    REVOKED = "revoked"
    LEDGER_WRITE_FAILED = "ledger_write_failed"


class TokenError(Exception):
    """Base de todos los errores del núcleo de sesiones."""

    kind: TokenErrorKind = TokenErrorKind.TAMPERED
    public_message = "Sesión inválida"

    def __init__(self, detail: str = "", *, token_id: Optional[str] = None, subject_id: Optional[str] = None):
        super().__init__(detail or self.kind.value)
        self.detail = detail or self.kind.value
        self.token_id = token_id
        self.subject_id = subject_id


class TokenExpiredError(TokenError):
    kind = TokenErrorKind.EXPIRED


class TokenTamperedError(TokenError):
    """Firma, estructura, emisor o audiencia inválidos."""

    kind = TokenErrorKind.TAMPERED


class TokenNotYetValidError(TokenError):
    kind = TokenErrorKind.NOT_YET_VALID


class WrongTokenKindError(TokenError):
    kind = TokenErrorKind.WRONG_KIND


class BindingMismatchError(TokenError):
    kind = TokenErrorKind.BINDING_MISMATCH


class TokenRevokedError(TokenError):
    kind = TokenErrorKind.REVOKED


class LedgerWriteError(TokenError):
    """No se pudo registrar el refresh token; la emisión completa falla."""

    kind = TokenErrorKind.LEDGER_WRITE_FAILED
    public_message = "Servicio de sesiones no disponible"
