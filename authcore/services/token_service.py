"""
Ciclo de vida de tokens: emisión, verificación, revocación, rotación e introspección.

Estados por token: issued -> active -> {expired | revoked}. Sólo los refresh
tokens pueden quedar "revoked" (ledger); access/verification/reset sólo expiran.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from authcore.core.config import Settings, TokenConfig, validate_token_config
from authcore.core.errors import (
    LedgerWriteError,
    TokenError,
    TokenRevokedError,
    TokenTamperedError,
    WrongTokenKindError,
)
from authcore.core.time import Clock, from_epoch, now_utc, to_epoch
from authcore.domain.tokens.schemas import (
    BINDABLE_KINDS,
    Claims,
    RequestContext,
    RotationDecision,
    Subject,
    TokenKind,
    TokenMetadata,
    TokenPair,
    VerificationResult,
)
from authcore.infrastructure.db.bootstrap import ensure_refresh_token_collection
from authcore.infrastructure.db.mongo import get_db
from authcore.infrastructure.db.schemas.refresh_token import RefreshTokenModel
from authcore.infrastructure.security import token_service as jwt_codec
from authcore.repositories.refresh_token_repo import MongoRefreshTokenStore, RefreshTokenStore
from authcore.services.binding_policy import BindingPolicy
from authcore.services.revocation_ledger import RevocationLedger, hash_token

_log = logging.getLogger("authcore.tokens")

# Nombre del claim JWT para cada campo de binding
_BINDING_CLAIMS = {"device_fingerprint": "dfp", "source_ip": "sip"}


class TokenLifecycleManager:
    """Orquesta firma, binding y ledger. Sin estado propio entre llamadas."""

    def __init__(self, config: TokenConfig, ledger: RevocationLedger, *, clock: Clock = now_utc):
        self.config = config
        self.ledger = ledger
        self.clock = clock
        self.binding = BindingPolicy(bind_to_device=config.bind_to_device, bind_to_ip=config.bind_to_ip)

    # --- helpers ---

    def _secret(self, kind: TokenKind) -> str:
        # Refresh firma con su propio secreto
        return self.config.refresh_secret if kind is TokenKind.REFRESH else self.config.access_secret

    def _ttl(self, kind: TokenKind) -> int:
        return {
            TokenKind.ACCESS: self.config.access_ttl_seconds,
            TokenKind.REFRESH: self.config.refresh_ttl_seconds,
            TokenKind.VERIFICATION: self.config.verification_ttl_seconds,
            TokenKind.RESET: self.config.reset_ttl_seconds,
        }[kind]

    def _payload(self, kind: TokenKind, subject: Subject, binding: Dict[str, str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sub": subject.subject_id,
            "type": kind.value,
            "jti": secrets.token_hex(16),
        }
        if kind is TokenKind.ACCESS:
            payload["email"] = subject.email
            payload["role"] = subject.role
        elif kind in (TokenKind.VERIFICATION, TokenKind.RESET):
            payload["email"] = subject.email
        for field, claim in _BINDING_CLAIMS.items():
            if field in binding:
                payload[claim] = binding[field]
        return {k: v for k, v in payload.items() if v is not None}

    # --- emisión ---

    def issue(self, kind: TokenKind | str, subject: Subject, context: Optional[RequestContext] = None) -> str:
        """
        Emite un token del kind pedido. Para refresh, el registro en el ledger es
        parte de la emisión: si falla, se lanza LedgerWriteError y no hay token.
        """
        kind = TokenKind(kind)
        context = context or RequestContext()
        binding = self.binding.binding_claims(context) if kind in BINDABLE_KINDS else {}
        now = self.clock()
        ttl = self._ttl(kind)
        payload = self._payload(kind, subject, binding)
        token = jwt_codec.sign(
            payload,
            self._secret(kind),
            expires_in=ttl,
            issuer=self.config.issuer,
            audience=self.config.audience,
            now=now,
            algorithm=self.config.algorithm,
        )

        if kind is TokenKind.REFRESH:
            try:
                self.ledger.record(
                    hash_token(token),
                    subject.subject_id,
                    binding,
                    now + timedelta(seconds=ttl),
                    token_id=payload["jti"],
                )
            except Exception as e:
                _log.exception("No se pudo registrar refresh token_id=%s sub=%s", payload["jti"], subject.subject_id)
                raise LedgerWriteError(
                    "No se pudo registrar el refresh token", token_id=payload["jti"], subject_id=subject.subject_id
                ) from e

        _log.info("Token emitido kind=%s sub=%s token_id=%s", kind.value, subject.subject_id, payload["jti"])
        return token

    def issue_token_pair(self, subject: Subject, context: Optional[RequestContext] = None) -> TokenPair:
        """Emite access + refresh. Si el ledger falla no se devuelve ningún token."""
        refresh = self.issue(TokenKind.REFRESH, subject, context)
        access = self.issue(TokenKind.ACCESS, subject, context)
        return TokenPair(access_token=access, refresh_token=refresh, expires_in=self.config.access_ttl_seconds)

    # --- verificación ---

    def verify(
        self, token: str, expected_kind: TokenKind | str, context: Optional[RequestContext] = None
    ) -> Claims:
        """
        Verificación completa: firma/fechas, kind, binding y (sólo refresh) ledger.
        Cualquier fallo lanza una subclase de TokenError con su `kind`.
        """
        expected = TokenKind(expected_kind)
        context = context or RequestContext()
        try:
            payload = jwt_codec.verify(
                token,
                self._secret(expected),
                issuer=self.config.issuer,
                audience=self.config.audience,
                now=self.clock(),
                algorithm=self.config.algorithm,
                leeway=self.config.leeway_seconds,
            )
            try:
                claims = Claims.model_validate(payload)
            except ValidationError as e:
                raise TokenTamperedError("Claims con formato inválido") from e

            if claims.kind is not expected:
                raise WrongTokenKindError(
                    f"Se esperaba '{expected.value}' y llegó '{claims.kind.value}'",
                    token_id=claims.token_id,
                    subject_id=claims.subject_id,
                )

            if expected in BINDABLE_KINDS:
                self.binding.check(
                    {"device_fingerprint": claims.device_fingerprint, "source_ip": claims.source_ip}, context
                )

            if expected is TokenKind.REFRESH:
                self._check_ledger(token, claims, context)
            return claims
        except TokenError as e:
            _log.warning(
                "Verificación fallida kind=%s expected=%s token_id=%s sub=%s detail=%s",
                e.kind.value,
                expected.value,
                e.token_id,
                e.subject_id,
                e.detail,
            )
            raise

    def _check_ledger(self, token: str, claims: Claims, context: RequestContext) -> None:
        record = self.ledger.active_record(hash_token(token))
        if record is None:
            raise TokenRevokedError("Refresh inactivo en el ledger", token_id=claims.token_id, subject_id=claims.subject_id)
        # El binding se revalida contra lo guardado, no sólo contra lo firmado
        try:
            self.binding.check(record.model_dump(), context, source="ledger")
        except TokenError as e:
            e.token_id, e.subject_id = claims.token_id, claims.subject_id
            raise

    def try_verify(
        self, token: str, expected_kind: TokenKind | str, context: Optional[RequestContext] = None
    ) -> VerificationResult:
        try:
            return VerificationResult(claims=self.verify(token, expected_kind, context))
        except TokenError as e:
            return VerificationResult(error_kind=e.kind)

    # --- revocación ---

    def revoke(self, refresh_token: str) -> bool:
        """Revoca un refresh token. No requiere verificarlo (sirve aun expirado)."""
        return self.ledger.revoke(hash_token(refresh_token))

    def revoke_all(self, subject_id: str) -> int:
        return self.ledger.revoke_all(subject_id)

    def list_sessions(self, subject_id: str) -> List[RefreshTokenModel]:
        return self.ledger.list_active(subject_id)

    # --- rotación ---

    def evaluate_rotation(self, access_token: str) -> RotationDecision:
        if not self.config.enable_rotation:
            return RotationDecision.DISABLED
        remaining = self._seconds_remaining(jwt_codec.decode_unverified(access_token))
        if remaining < self.config.rotation_threshold_seconds:
            return RotationDecision.DUE
        return RotationDecision.NOT_DUE

    def rotate_if_needed(
        self,
        access_token: str,
        refresh_token: str,
        subject: Subject,
        context: Optional[RequestContext] = None,
    ) -> Optional[TokenPair]:
        """
        Si el access token está por expirar (y la rotación está habilitada),
        revoca el refresh presentado y emite un par nuevo. Si no, devuelve None.

        La revocación va antes de la emisión. Si luego el ledger falla
        (LedgerWriteError), la sesión anterior queda revocada y no hay par nuevo:
        el cliente debe volver a autenticarse.
        """
        decision = self.evaluate_rotation(access_token)
        if decision is not RotationDecision.DUE:
            _log.debug("Rotación omitida sub=%s reason=%s", subject.subject_id, decision.value)
            return None

        claims = self.verify(refresh_token, TokenKind.REFRESH, context)
        if claims.subject_id != subject.subject_id:
            _log.warning("Rotación con refresh de otro sujeto token_id=%s", claims.token_id)
            raise TokenTamperedError("Refresh no pertenece al sujeto", token_id=claims.token_id)

        # Sólo una rotación concurrente puede ganar la revocación del refresh
        if not self.ledger.revoke(hash_token(refresh_token)):
            raise TokenRevokedError("Refresh ya rotado", token_id=claims.token_id, subject_id=claims.subject_id)

        pair = self.issue_token_pair(subject, context)
        _log.info("Par rotado sub=%s old_token_id=%s", subject.subject_id, claims.token_id)
        return pair

    # --- introspección (sin confianza) ---

    def _seconds_remaining(self, payload: Dict[str, Any]) -> int:
        exp = payload.get("exp")
        if not isinstance(exp, int):
            raise TokenTamperedError("Token sin exp")
        return exp - to_epoch(self.clock())

    def introspect(self, token: str) -> TokenMetadata:
        """
        Decodifica SIN verificar firma. Sólo para soporte/depuración; nunca
        debe usarse para autorizar una acción.
        """
        payload = jwt_codec.decode_unverified(token)
        iat, exp = payload.get("iat"), payload.get("exp")
        return TokenMetadata(
            verified=False,
            kind=payload.get("type"),
            subject_id=payload.get("sub"),
            token_id=payload.get("jti"),
            issuer=payload.get("iss"),
            audience=payload.get("aud") if isinstance(payload.get("aud"), str) else None,
            issued_at=from_epoch(iat) if isinstance(iat, int) else None,
            expires_at=from_epoch(exp) if isinstance(exp, int) else None,
            seconds_remaining=self._seconds_remaining(payload) if isinstance(exp, int) else None,
            device_bound="dfp" in payload,
            ip_bound="sip" in payload,
        )

    def get_token_expiration(self, token: str) -> datetime:
        payload = jwt_codec.decode_unverified(token)
        exp = payload.get("exp")
        if not isinstance(exp, int):
            raise TokenTamperedError("Token sin exp")
        return from_epoch(exp)

    def is_token_expired(self, token: str) -> bool:
        """Un token ilegible cuenta como expirado."""
        try:
            return self.get_token_expiration(token) <= self.clock()
        except TokenError:
            return True


def build_token_manager(
    cfg: Settings,
    store: Optional[RefreshTokenStore] = None,
    *,
    clock: Clock = now_utc,
) -> TokenLifecycleManager:
    """
    Arma el manager una sola vez al arrancar el proceso. Sin `store`, asegura y usa la
    colección Mongo configurada (requiere `init_mongo()` previo).
    """
    token_cfg = cfg.token_config()
    for problem in validate_token_config(token_cfg):
        _log.warning("Configuración de tokens: %s", problem)
    if store is None:
        db = get_db()
        ensure_refresh_token_collection(db, cfg.refresh_token_collection)
        store = MongoRefreshTokenStore(db[cfg.refresh_token_collection])
    return TokenLifecycleManager(token_cfg, RevocationLedger(store, clock=clock), clock=clock)
