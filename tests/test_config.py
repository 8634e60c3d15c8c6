import importlib

import config
from security import hash_password, verify_password


def test_log_level_is_case_insensitive(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    try:
        assert importlib.reload(config).LOG_LEVEL == "DEBUG"
    finally:
        monkeypatch.delenv("LOG_LEVEL")
        importlib.reload(config)


def test_settings_follow_the_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "from-env")
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "5")
    settings = config.get_settings()
    assert settings.secret_key == "from-env"
    assert settings.access_token_expire_minutes == 5


def test_password_hash_with_fixed_salt():
    salt = bytes(16)
    hashed = hash_password("Password123", salt)
    assert hashed == hash_password("Password123", salt)
    assert hashed.startswith(salt.hex() + ":")
    assert verify_password("Password123", hashed)
    assert not verify_password("Password124", hashed)
    assert not verify_password("Password123", "not-a-digest")
