from estimator.config import DevelopmentConfig, TestingConfig, get_config, load_settings


def test_select_by_env(monkeypatch):
    assert get_config("testing") is TestingConfig
    assert get_config("nonsense") is DevelopmentConfig
    monkeypatch.setenv("FLASK_ENV", "testing")
    assert get_config() is TestingConfig


def test_load_settings_is_plain_dict():
    settings = load_settings("testing")
    assert settings["TESTING"] is True
    assert settings["GEMINI_API_KEY"] == ""
    assert settings["HISTORY_MAX_ITEMS"] == 10
    assert settings["MAX_CONTENT_LENGTH"] == 10 * 1024 * 1024
    assert all(key.isupper() for key in settings)
