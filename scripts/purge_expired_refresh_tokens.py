"""Purga registros del ledger de refresh tokens cuya expiración ya pasó.

Uso típico:
  PYTHONPATH=. python scripts/purge_expired_refresh_tokens.py --dry-run
  PYTHONPATH=. python scripts/purge_expired_refresh_tokens.py

Características:
  - Borra con semántica delete-if-expired; puede correr junto al tráfico normal.
  - Complementa al índice TTL de `expires_at` (útil si el TTL está desactivado).
  - --dry-run sólo cuenta cuántos se borrarían.
"""
from __future__ import annotations

import argparse
import logging
import sys

from authcore.core.config import settings
from authcore.core.logging import setup_logging
from authcore.core.time import now_utc
from authcore.infrastructure.db.mongo import get_collection, init_mongo
from authcore.repositories.refresh_token_repo import MongoRefreshTokenStore
from authcore.services.revocation_ledger import RevocationLedger

_log = logging.getLogger("authcore.gc")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="Sólo contar, no borrar")
    parser.add_argument("--collection", default=settings.refresh_token_collection)
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    if not init_mongo(settings):
        _log.error("Mongo no disponible; abortando")
        return 1

    coll = get_collection(args.collection)
    if args.dry_run:
        n = coll.count_documents({"expires_at": {"$lte": now_utc()}})
        print(f"[dry-run] {n} registros expirados en '{args.collection}'")
        return 0

    n = RevocationLedger(MongoRefreshTokenStore(coll)).purge_expired()
    print(f"Eliminados {n} registros expirados de '{args.collection}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
