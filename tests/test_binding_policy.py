import pytest

from authcore.core.errors import BindingMismatchError
from authcore.domain.tokens.schemas import RequestContext
from authcore.services.binding_policy import BindingPolicy, device_matches, ip_matches

CTX = RequestContext(device_fingerprint="fp-1", source_ip="1.2.3.4")


def test_disabled_policy_embeds_nothing_and_never_rejects():
    policy = BindingPolicy()
    assert not policy.enabled
    assert policy.binding_claims(CTX) == {}
    policy.check({}, RequestContext())


def test_claims_follow_enabled_checks_only():
    assert BindingPolicy(bind_to_device=True).binding_claims(CTX) == {"device_fingerprint": "fp-1"}
    assert BindingPolicy(bind_to_ip=True).binding_claims(CTX) == {"source_ip": "1.2.3.4"}
    assert BindingPolicy(bind_to_device=True, bind_to_ip=True).binding_claims(CTX) == {
        "device_fingerprint": "fp-1",
        "source_ip": "1.2.3.4",
    }


def test_pure_matchers():
    bound = {"device_fingerprint": "fp-1", "source_ip": "1.2.3.4"}
    assert device_matches(bound, CTX)
    assert ip_matches(bound, CTX)
    assert not device_matches(bound, RequestContext(device_fingerprint="fp-2"))
    assert not ip_matches({}, CTX)


def test_device_mismatch_rejected():
    policy = BindingPolicy(bind_to_device=True)
    with pytest.raises(BindingMismatchError):
        policy.check({"device_fingerprint": "fp-1"}, RequestContext(device_fingerprint="fp-2"))


def test_missing_claim_fails_closed():
    policy = BindingPolicy(bind_to_ip=True)
    with pytest.raises(BindingMismatchError):
        policy.check({"source_ip": None}, CTX)


def test_missing_context_fails_closed():
    policy = BindingPolicy(bind_to_device=True)
    with pytest.raises(BindingMismatchError):
        policy.check({"device_fingerprint": "fp-1"}, RequestContext())


def test_checks_are_independent():
    # Sólo IP activa: la huella distinta no importa
    BindingPolicy(bind_to_ip=True).check(
        {"source_ip": "1.2.3.4"}, RequestContext(device_fingerprint="other", source_ip="1.2.3.4")
    )
    with pytest.raises(BindingMismatchError):
        BindingPolicy(bind_to_device=True, bind_to_ip=True).check(
            {"device_fingerprint": "fp-1", "source_ip": "1.2.3.4"},
            RequestContext(device_fingerprint="fp-1", source_ip="9.9.9.9"),
        )
