"""
Política de binding: ata la validez del token al dispositivo y/o IP del cliente.

Las dos comprobaciones son independientes y aditivas. Si una está activa y el
claim (o el contexto) falta, se considera mismatch: nunca se omite.
"""
import hmac
import logging
from typing import Any, Dict, Mapping, Optional

from authcore.core.errors import BindingMismatchError
from authcore.domain.tokens.schemas import RequestContext

_log = logging.getLogger("authcore.binding")


def _same(expected: Optional[str], presented: Optional[str]) -> bool:
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


def device_matches(bound: Mapping[str, Any], context: RequestContext) -> bool:
    return _same(bound.get("device_fingerprint"), context.device_fingerprint)


def ip_matches(bound: Mapping[str, Any], context: RequestContext) -> bool:
    return _same(bound.get("source_ip"), context.source_ip)


class BindingPolicy:
    def __init__(self, *, bind_to_device: bool = False, bind_to_ip: bool = False):
        self.bind_to_device = bind_to_device
        self.bind_to_ip = bind_to_ip

    @property
    def enabled(self) -> bool:
        return self.bind_to_device or self.bind_to_ip

    def binding_claims(self, context: RequestContext) -> Dict[str, str]:
        """Claims de binding a incrustar en la emisión (sólo los activos y presentes)."""
        out: Dict[str, str] = {}
        if self.bind_to_device and context.device_fingerprint:
            out["device_fingerprint"] = context.device_fingerprint
        if self.bind_to_ip and context.source_ip:
            out["source_ip"] = context.source_ip
        return out

    def check(self, bound: Mapping[str, Any], context: RequestContext, *, source: str = "claims") -> None:
        """
        Compara los valores ligados (`bound`: claims firmados o registro del ledger)
        con el contexto presentado. Lanza BindingMismatchError si alguna falla.
        """
        if self.bind_to_device and not device_matches(bound, context):
            _log.warning("binding mismatch check=device source=%s", source)
            raise BindingMismatchError("Dispositivo no coincide")
        if self.bind_to_ip and not ip_matches(bound, context):
            _log.warning("binding mismatch check=ip source=%s", source)
            raise BindingMismatchError("IP no coincide")
