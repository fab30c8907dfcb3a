"""Serve the app with graceful shutdown.

SIGINT/SIGTERM stop the accept loop and close the listening socket, then
in-flight requests get ``shutdown_timeout`` seconds to finish. Responses
written during the drain carry ``Connection: close`` so keep-alive clients
do not reuse the connection. An invalid PORT, failing to bind, or failing
to drain in time exits with status 1.
"""
import logging
import os
import signal
import sys
import threading
from typing import Optional

from werkzeug.serving import make_server
from werkzeug.wsgi import ClosingIterator

from gaea_whoami.app import create_app
from gaea_whoami.config import Settings, bind_app_logger, configure_logging, parse_log_level

logger = logging.getLogger(__name__)


class InFlightTracker:
    """WSGI middleware counting requests whose response is not yet closed."""

    def __init__(self, app):
        self.app = app
        self.active = 0
        self.draining = False
        self._cond = threading.Condition()

    def __call__(self, environ, start_response):
        def _start_response(status, headers, exc_info=None):
            if self.draining:
                headers = [(k, v) for k, v in headers if k.lower() != "connection"]
                headers.append(("Connection", "close"))
            return start_response(status, headers, exc_info)

        self.enter()
        try:
            app_iter = self.app(environ, _start_response)
        except BaseException:
            self.leave()
            raise
        return ClosingIterator(app_iter, self.leave)

    def enter(self) -> None:
        with self._cond:
            self.active += 1

    def leave(self) -> None:
        with self._cond:
            self.active -= 1
            if self.active == 0:
                self._cond.notify_all()

    def wait_idle(self, timeout: float) -> bool:
        """Block until no request is in flight; False if the timeout expired."""
        with self._cond:
            return self._cond.wait_for(lambda: self.active == 0, timeout=timeout)


class GracefulServer:
    def __init__(self, app, host: str, port: int, shutdown_timeout: float):
        self.tracker = InFlightTracker(app)
        self.shutdown_timeout = shutdown_timeout
        # werkzeug reports bind errors on stderr and raises SystemExit, older releases raise OSError
        self._server = make_server(host, port, self.tracker, threaded=True)
        self._stop = threading.Event()

    @property
    def port(self) -> int:
        return self._server.server_port

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)

    def _handle_signal(self, signum, frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}")
        self.stop()

    def stop(self) -> None:
        self._stop.set()

    def run(self) -> bool:
        """Serve until stopped. Returns True if in-flight requests drained in time."""
        thread = threading.Thread(target=self._server.serve_forever, name="http-server", daemon=True)
        thread.start()
        logger.info(f"Server starting on port {self.port}")

        # Poll so signal handlers get a chance to run in the main thread
        while not self._stop.wait(0.5):
            pass

        logger.info("Server shutting down gracefully...")
        self.tracker.draining = True
        self._server.shutdown()
        self._server.server_close()
        return self.tracker.wait_idle(self.shutdown_timeout)


def main(settings: Optional[Settings] = None, app=None) -> None:
    if settings is None:
        configure_logging(parse_log_level(os.getenv("LOG_LEVEL", "INFO")))
        try:
            settings = Settings.from_env()
        except ValueError as e:
            logger.critical(f"Server failed to start: {e}")
            sys.exit(1)
    else:
        configure_logging(settings.log_level)

    if app is None:
        app = create_app(settings)
    bind_app_logger(app)

    try:
        server = GracefulServer(app, settings.host, settings.port, settings.shutdown_timeout)
    except (OSError, SystemExit) as e:
        reason = e if isinstance(e, OSError) else "address unavailable"
        logger.critical(f"Server failed to start on {settings.host}:{settings.port}: {reason}")
        sys.exit(1)

    server.install_signal_handlers()
    if not server.run():
        logger.critical(
            f"Server forced to shutdown: {server.tracker.active} request(s) still "
            f"in flight after {settings.shutdown_timeout:g}s"
        )
        sys.exit(1)
    logger.info("Server stopped")


if __name__ == "__main__":
    main()
