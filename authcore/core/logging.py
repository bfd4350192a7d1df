"""
Configuración de logging del núcleo de sesiones e integración con Uvicorn.
"""
import logging


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(getattr(logging, level.upper(), logging.INFO))
    # pymongo es muy verboso en DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)
