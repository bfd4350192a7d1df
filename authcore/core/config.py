"""Configuración central del núcleo de sesiones (Pydantic Settings).

- Carga variables desde .env en la raíz del proyecto.
- `Settings` sólo se lee una vez al arrancar el proceso; el resto del código
  recibe un `TokenConfig` inmutable (ver `Settings.token_config()`).
"""
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resuelve el .env ubicado en la raíz del proyecto (independiente del CWD)
ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

# Valores de ejemplo que nunca deben llegar a producción
PLACEHOLDER_SECRETS = frozenset(
    {
        "CHANGE_THIS_IN_PRODUCTION",
        "changeme",
        "secret",
        "your-256-bit-cryptographically-secure-secret-here-change-this",
        "your-256-bit-cryptographically-secure-refresh-secret-here-change-this",
    }
)
MIN_SECRET_LENGTH = 32


class TokenConfig(BaseModel):
    """Política de tokens fijada al inicio del proceso.

    Es inmutable: los toggles de binding/rotación y los secretos no cambian
    en tiempo de ejecución.
    """

    model_config = ConfigDict(frozen=True)

    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    issuer: str = "authcore"
    audience: str = "authcore-users"

    access_ttl_seconds: int = 30 * 60
    refresh_ttl_seconds: int = 7 * 24 * 3600
    verification_ttl_seconds: int = 10 * 60
    reset_ttl_seconds: int = 60 * 60

    bind_to_device: bool = False
    bind_to_ip: bool = False
    enable_rotation: bool = False
    rotation_threshold_seconds: int = 300
    leeway_seconds: int = 0


class Settings(BaseSettings):
    """Variables de configuración con valores por defecto razonables.

    Nota: los valores pueden sobreescribirse vía variables de entorno (.env).
    """
    # App
    app_name: str = "authcore"
    log_level: str = "INFO"
    # Proxies cuyo X-Forwarded-For / X-Real-IP se acepta (vacío = sólo el peer del socket)
    trusted_proxies: List[str] = []

    # Mongo
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "authcore"
    # TLS relax options (dev only)
    mongo_tls_insecure: bool = False
    mongo_tls_allow_invalid_hostnames: bool = False
    refresh_token_collection: str = "refresh_token"

    # JWT: secretos separados para access/verification/reset y para refresh
    jwt_secret: Optional[str] = None
    jwt_refresh_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "authcore"
    jwt_audience: str = "authcore-users"

    # Vigencias
    access_token_expire_minutes: int = Field(
        30,
        validation_alias=AliasChoices("ACCESS_TOKEN_EXPIRE_MINUTES", "JWT_EXPIRES_IN_MINUTES"),
    )
    refresh_token_expire_days: int = Field(
        7,
        validation_alias=AliasChoices("REFRESH_TOKEN_EXPIRE_DAYS", "JWT_REFRESH_EXPIRES_IN_DAYS"),
    )
    verification_token_expire_minutes: int = 10
    reset_token_expire_minutes: int = 60

    # Binding y rotación (desactivados por defecto)
    jwt_bind_to_device: bool = False
    jwt_bind_to_ip: bool = False
    jwt_enable_rotation: bool = False
    jwt_rotation_threshold_seconds: int = Field(
        300,
        validation_alias=AliasChoices("JWT_ROTATION_THRESHOLD_SECONDS", "JWT_ROTATION_THRESHOLD"),
    )
    jwt_leeway_seconds: int = 0

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # no fallar si hay variables no usadas
    )

    def token_config(self) -> TokenConfig:
        """Construye el `TokenConfig` inmutable. Falla si faltan secretos."""
        if not self.jwt_secret or not self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET y JWT_REFRESH_SECRET son obligatorios")
        return TokenConfig(
            access_secret=self.jwt_secret,
            refresh_secret=self.jwt_refresh_secret,
            algorithm=self.jwt_algorithm,
            issuer=self.jwt_issuer,
            audience=self.jwt_audience,
            access_ttl_seconds=self.access_token_expire_minutes * 60,
            refresh_ttl_seconds=self.refresh_token_expire_days * 24 * 3600,
            verification_ttl_seconds=self.verification_token_expire_minutes * 60,
            reset_ttl_seconds=self.reset_token_expire_minutes * 60,
            bind_to_device=self.jwt_bind_to_device,
            bind_to_ip=self.jwt_bind_to_ip,
            enable_rotation=self.jwt_enable_rotation,
            rotation_threshold_seconds=self.jwt_rotation_threshold_seconds,
            leeway_seconds=self.jwt_leeway_seconds,
        )


def validate_token_config(cfg: TokenConfig) -> List[str]:
    """Revisa la política de tokens y devuelve la lista de problemas encontrados.

    Lista vacía = configuración aceptable.
    """
    errors: List[str] = []
    for name, value in (("JWT_SECRET", cfg.access_secret), ("JWT_REFRESH_SECRET", cfg.refresh_secret)):
        if value in PLACEHOLDER_SECRETS:
            errors.append(f"{name} no debe usar el valor de ejemplo")
        elif len(value) < MIN_SECRET_LENGTH:
            errors.append(f"{name} debe tener al menos {MIN_SECRET_LENGTH} caracteres")
    if cfg.access_secret == cfg.refresh_secret:
        errors.append("JWT_SECRET y JWT_REFRESH_SECRET deben ser distintos")

    ttls = {
        "access": cfg.access_ttl_seconds,
        "refresh": cfg.refresh_ttl_seconds,
        "verification": cfg.verification_ttl_seconds,
        "reset": cfg.reset_ttl_seconds,
    }
    for kind, ttl in ttls.items():
        if ttl <= 0:
            errors.append(f"La vigencia de '{kind}' debe ser positiva")
    if cfg.rotation_threshold_seconds < 0:
        errors.append("JWT_ROTATION_THRESHOLD_SECONDS no puede ser negativo")
    return errors


settings = Settings()
