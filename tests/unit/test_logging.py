from reporter.core.logging import APP_LOGGERS
from reporter.core.logging import build_logging_config


def test_app_loggers_follow_requested_level():
    config = build_logging_config("warning")

    for name in APP_LOGGERS:
        assert config["loggers"][name] == {"handlers": ["app"], "level": "WARNING", "propagate": False}
    assert config["handlers"]["app"]["level"] == "WARNING"


def test_uvicorn_loggers_are_untouched():
    config = build_logging_config()

    assert config["loggers"]["uvicorn.access"]["handlers"] == ["access"]
    assert config["loggers"]["uvicorn.error"]["level"] == "INFO"
    assert config["loggers"]["reporter"]["level"] == "DEBUG"
