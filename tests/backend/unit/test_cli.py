from callrelay.backend.cli import build_settings


def test_build_settings_uses_env_defaults(monkeypatch) -> None:
    monkeypatch.setenv("CALLRELAY_PORT", "4100")
    monkeypatch.setenv("CALLRELAY_OFFLINE_GRACE_SECONDS", "5")

    settings = build_settings([])

    assert settings.port == 4100
    assert settings.offline_grace_seconds == 5.0


def test_build_settings_applies_cli_overrides(monkeypatch) -> None:
    monkeypatch.setenv("CALLRELAY_SERVER_SALT", "salt-from-env")

    settings = build_settings(["--host", "0.0.0.0", "--port", "8080", "--offline-grace", "0.5", "--log-level", "debug"])

    assert settings.host == "0.0.0.0"
    assert settings.port == 8080
    assert settings.offline_grace_seconds == 0.5
    assert settings.log_level == "DEBUG"
    assert settings.server_salt == "salt-from-env"
