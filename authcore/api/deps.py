"""
Dependencias reutilizables para la capa HTTP (FastAPI Depends).

- Contexto de petición: IP del cliente y huella del dispositivo, siempre
  derivadas en el servidor (nunca copiadas de un header que diga "soy X").
- Autenticación: extrae el Bearer y lo verifica como access token.
- Mantener esta capa delgada: la lógica vive en TokenLifecycleManager.
"""
import hashlib
from typing import FrozenSet, Iterable, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED

from authcore.core.config import settings
from authcore.core.errors import TokenError
from authcore.core.exceptions import register_exception_handlers
from authcore.domain.tokens.schemas import Claims, RequestContext, TokenKind
from authcore.services.token_service import TokenLifecycleManager


def client_ip(request: Request, trusted_proxies: FrozenSet[str] = frozenset()) -> str:
    """
    Peer del socket. Sólo si el peer es un proxy de confianza se usa el primer
    X-Forwarded-For (o X-Real-IP).
    """
    peer = request.client.host if request.client else None
    if peer is not None and peer in trusted_proxies:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    return peer or "unknown"


def device_fingerprint(request: Request) -> str:
    """Huella estable del dispositivo (sin IP, timestamp ni referer, que varían)."""
    parts = [
        request.headers.get("user-agent", ""),
        request.headers.get("accept-language", ""),
        request.headers.get("accept-encoding", ""),
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def _trusted_proxies(request: Request) -> FrozenSet[str]:
    app = request.scope.get("app")
    return getattr(app.state, "trusted_proxies", frozenset()) if app is not None else frozenset()


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        device_fingerprint=device_fingerprint(request),
        source_ip=client_ip(request, _trusted_proxies(request)),
    )


def get_token_manager(request: Request) -> TokenLifecycleManager:
    manager = getattr(request.app.state, "token_manager", None)
    if manager is None:
        raise RuntimeError("TokenLifecycleManager no configurado en app.state")
    return manager


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=TokenError.public_message)
    return authorization.split(" ", 1)[1].strip()


def get_access_claims(
    token: str = Depends(bearer_token),
    context: RequestContext = Depends(get_request_context),
    manager: TokenLifecycleManager = Depends(get_token_manager),
) -> Claims:
    # Los TokenError los traduce register_exception_handlers a un 401 opaco
    return manager.verify(token, TokenKind.ACCESS, context)


def attach_token_manager(
    app: FastAPI,
    manager: TokenLifecycleManager,
    trusted_proxies: Optional[Iterable[str]] = None,
) -> None:
    """Publica el manager (y los proxies de confianza) en app.state y registra los handlers."""
    app.state.token_manager = manager
    proxies = settings.trusted_proxies if trusted_proxies is None else trusted_proxies
    app.state.trusted_proxies = frozenset(proxies)
    register_exception_handlers(app)
