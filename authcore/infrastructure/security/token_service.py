"""
Firma y verificación de JWTs (sin I/O ni estado).

La firma, emisor y audiencia los valida PyJWT; la ventana temporal (exp/iat/nbf)
se comprueba contra el reloj inyectado para que los servicios y los tests
compartan la misma noción de "ahora".
"""
from datetime import datetime
from typing import Any, Dict, Iterable

# Asegura que usamos PyJWT (no el paquete "jwt" incorrecto)
try:
    import jwt as pyjwt  # PyJWT expone jwt.encode/jwt.decode
    if not hasattr(pyjwt, "encode"):
        raise ImportError("Paquete 'jwt' incorrecto en el entorno")
except ImportError as e:
    raise RuntimeError(
        "Conflicto de librerías JWT: instala PyJWT>=2 y desinstala el paquete 'jwt'. "
        "Ejecuta: pip uninstall jwt && pip install PyJWT"
    ) from e

from authcore.core.errors import TokenExpiredError, TokenNotYetValidError, TokenTamperedError
from authcore.core.time import to_epoch

REQUIRED_CLAIMS = ("sub", "type", "jti", "iat", "exp", "iss", "aud")


def sign(
    claims: Dict[str, Any],
    secret: str,
    *,
    expires_in: int,
    issuer: str,
    audience: str,
    now: datetime,
    algorithm: str = "HS256",
) -> str:
    """
    Firma `claims` añadiendo iss, aud, iat y exp = now + expires_in (segundos).
    """
    issued = to_epoch(now)
    payload = dict(claims)
    payload.update(
        {
            "iss": issuer,
            "aud": audience,
            "iat": issued,
            "exp": issued + int(expires_in),
        }
    )
    return pyjwt.encode(payload, secret, algorithm=algorithm)


def verify(
    token: str,
    secret: str,
    *,
    issuer: str,
    audience: str,
    now: datetime,
    algorithm: str = "HS256",
    leeway: int = 0,
    required: Iterable[str] = REQUIRED_CLAIMS,
) -> Dict[str, Any]:
    """
    Valida firma/emisor/audiencia y la ventana temporal. Devuelve el payload.

    Errores: TokenTamperedError, TokenExpiredError, TokenNotYetValidError.
    """
    try:
        payload = pyjwt.decode(
            token,
            key=secret,
            algorithms=[algorithm],
            issuer=issuer,
            audience=audience,
            options={
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "require": list(required),
            },
        )
    except pyjwt.PyJWTError as e:
        raise TokenTamperedError(f"Token inválido: {type(e).__name__}") from e

    exp, iat, nbf = payload.get("exp"), payload.get("iat"), payload.get("nbf")
    if not isinstance(exp, int) or not isinstance(iat, int):
        raise TokenTamperedError("exp/iat deben ser enteros")

    current = to_epoch(now)
    if exp <= current - leeway:
        raise TokenExpiredError("Token expirado", token_id=payload.get("jti"), subject_id=payload.get("sub"))
    if iat > current + leeway or (isinstance(nbf, int) and nbf > current + leeway):
        raise TokenNotYetValidError("Token aún no válido", token_id=payload.get("jti"), subject_id=payload.get("sub"))
    return payload


def decode_unverified(token: str) -> Dict[str, Any]:
    """
    Decodifica el payload SIN verificar firma ni fechas. No otorga confianza.
    """
    try:
        payload = pyjwt.decode(token, options={"verify_signature": False})
    except pyjwt.PyJWTError as e:
        raise TokenTamperedError("Formato de token inválido") from e
    if not isinstance(payload, dict):
        raise TokenTamperedError("Formato de token inválido")
    return payload
