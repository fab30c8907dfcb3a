"""WSGI entry point for external servers, e.g. ``gunicorn gaea_whoami.wsgi:app``."""
from gaea_whoami.app import create_app
from gaea_whoami.config import Settings, bind_app_logger, configure_logging

settings = Settings.from_env()
configure_logging(settings.log_level)

app = create_app(settings)
bind_app_logger(app)
