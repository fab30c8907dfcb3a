"""Process-wide settings and build constants.

Both are read once at startup and handed to the app; nothing here is
mutated afterwards.
"""
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from gaea_whoami import _build

DEFAULT_PORT = 8080
DEFAULT_CONFIG_DIR = Path("/etc/config")
SHUTDOWN_TIMEOUT = 30.0

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def parse_log_level(name: str) -> int:
    level = getattr(logging, name.upper(), None)
    return level if isinstance(level, int) else logging.INFO


def parse_port(raw: str) -> int:
    """Raise ValueError unless raw is a TCP port number."""
    try:
        port = int(raw)
    except ValueError:
        raise ValueError(f"invalid PORT {raw!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"PORT {port} out of range")
    return port


@dataclass(frozen=True)
class BuildInfo:
    version: str = "dev"
    git_commit: str = "unknown"
    build_time: str = "unknown"

    @classmethod
    def load(cls) -> "BuildInfo":
        return cls(
            version=_build.VERSION,
            git_commit=_build.GIT_COMMIT,
            build_time=_build.BUILD_TIME,
        )


@dataclass(frozen=True)
class Settings:
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    log_level: int = logging.INFO
    request_logging: bool = False
    config_dir: Path = DEFAULT_CONFIG_DIR
    shutdown_timeout: float = SHUTDOWN_TIMEOUT

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            port=parse_port(os.getenv("PORT") or str(DEFAULT_PORT)),
            log_level=parse_log_level(os.getenv("LOG_LEVEL", "INFO")),
            request_logging=env_flag("REQUEST_LOGGING"),
        )


def configure_logging(level: int) -> None:
    """Send all logs to stdout so they appear in container output."""
    logging.basicConfig(stream=sys.stdout, level=level, format=LOG_FORMAT)
    # Ensure gunicorn and werkzeug use the same handlers
    for logger_name in ("gunicorn.error", "gunicorn.access", "werkzeug"):
        server_logger = logging.getLogger(logger_name)
        server_logger.handlers = logging.root.handlers
        server_logger.setLevel(level)
        server_logger.propagate = False


def bind_app_logger(app) -> None:
    # Tie Flask's app.logger to the root handlers as well
    app.logger.handlers = logging.root.handlers
    app.logger.propagate = False
