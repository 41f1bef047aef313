import pytest

from backend.src.services import config as config_module
from backend.src.services.auth import AuthError, AuthService, SessionJWTStrategy


@pytest.fixture(autouse=True)
def restore_config_cache():
    """
    Ensure configuration cache is cleared between tests.
    """
    config_module.reload_config()
    yield
    config_module.get_config.cache_clear()


def test_get_config_allows_missing_jwt_secret(monkeypatch) -> None:
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

    cfg = config_module.reload_config()

    assert cfg.jwt_secret_key is None
    assert cfg.database_url == "sqlite://"


def test_get_config_rejects_short_jwt_secret(monkeypatch) -> None:
    monkeypatch.setenv("JWT_SECRET_KEY", "short")

    with pytest.raises(ValueError):
        config_module.reload_config()


def test_blank_admin_key_disables_admin(monkeypatch) -> None:
    monkeypatch.setenv("ADMIN_API_KEY", "   ")

    assert config_module.reload_config().admin_api_key is None


def test_allow_origins_split_on_commas(monkeypatch) -> None:
    monkeypatch.setenv("ALLOW_ORIGINS", "http://a.test, http://b.test,")

    cfg = config_module.reload_config()

    assert cfg.allow_origins == ("http://a.test", "http://b.test")


def test_local_mode_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setenv("ENABLE_LOCAL_MODE", "false")
    monkeypatch.setenv("PORT", "9000")

    cfg = config_module.reload_config()

    assert cfg.enable_local_mode is False
    assert cfg.port == 9000
    assert cfg.is_sqlite


def test_local_mode_is_off_unless_enabled(monkeypatch) -> None:
    monkeypatch.delenv("ENABLE_LOCAL_MODE", raising=False)
    monkeypatch.delenv("LOCAL_DEV_TOKEN", raising=False)

    cfg = config_module.reload_config()

    assert cfg.enable_local_mode is False
    assert cfg.local_dev_token is None
    service = AuthService(config=cfg)
    assert [type(s) for s in service.strategies] == [SessionJWTStrategy]
    with pytest.raises(AuthError):
        service.authenticate("local-dev-token")
