import pytest
from pydantic import ValidationError

from authcore.core.config import Settings, TokenConfig, validate_token_config

GOOD = dict(
    access_secret="a" * 16 + "access-secret-long-enough",
    refresh_secret="r" * 16 + "refresh-secret-long-enough",
)


def test_token_config_is_immutable():
    cfg = TokenConfig(**GOOD)
    with pytest.raises(ValidationError):
        cfg.bind_to_ip = True


def test_defaults_keep_binding_and_rotation_off():
    cfg = TokenConfig(**GOOD)
    assert cfg.bind_to_device is False
    assert cfg.bind_to_ip is False
    assert cfg.enable_rotation is False
    assert validate_token_config(cfg) == []


def test_validate_reports_weak_or_shared_secrets():
    problems = validate_token_config(TokenConfig(access_secret="short", refresh_secret="short"))
    assert any("JWT_SECRET debe tener" in p for p in problems)
    assert any("deben ser distintos" in p for p in problems)

    placeholder = TokenConfig(access_secret="CHANGE_THIS_IN_PRODUCTION", refresh_secret=GOOD["refresh_secret"])
    assert any("valor de ejemplo" in p for p in validate_token_config(placeholder))


def test_validate_reports_non_positive_lifetimes():
    problems = validate_token_config(TokenConfig(**GOOD, access_ttl_seconds=0))
    assert any("'access'" in p for p in problems)


def test_settings_require_secrets():
    with pytest.raises(ValueError):
        Settings(_env_file=None, jwt_secret=None, jwt_refresh_secret=None).token_config()


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", GOOD["access_secret"])
    monkeypatch.setenv("JWT_REFRESH_SECRET", GOOD["refresh_secret"])
    monkeypatch.setenv("JWT_BIND_TO_IP", "true")
    monkeypatch.setenv("JWT_ENABLE_ROTATION", "true")
    monkeypatch.setenv("JWT_ROTATION_THRESHOLD", "120")
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "5")
    cfg = Settings(_env_file=None).token_config()
    assert cfg.bind_to_ip is True
    assert cfg.bind_to_device is False
    assert cfg.enable_rotation is True
    assert cfg.rotation_threshold_seconds == 120
    assert cfg.access_ttl_seconds == 300
    assert cfg.refresh_ttl_seconds == 7 * 24 * 3600
