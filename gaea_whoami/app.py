#!/usr/bin/env python3
"""gaea-whoami service

Reports the build version, pod metadata, GAEA* environment variables,
mounted config files and resource limits of the pod the app runs in.
Designed to run inside Kubernetes as a debugging workload.

Endpoints:
  ANY /         version, pod, environment, configmaps, resources
  ANY /whoami   request headers, client/remote/pod/host IP, method, path
  ANY /version  build constants
  ANY /envs     GAEA* environment variables
  ANY /cm       files under /etc/config
  ANY /healthz  liveness probe
  ANY /readyz   readiness probe
"""
import time
from typing import Optional

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from gaea_whoami import collectors
from gaea_whoami.collectors import LocalAddressProvider, PsutilAddressProvider
from gaea_whoami.config import BuildInfo, Settings
from gaea_whoami.models import WhoAmIResponse, utc_timestamp

# Every endpoint answers regardless of method; /whoami echoes it back
ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(
    settings: Optional[Settings] = None,
    build: Optional[BuildInfo] = None,
    address_provider: Optional[LocalAddressProvider] = None,
) -> Flask:
    settings = settings or Settings.from_env()
    build = build or BuildInfo.load()
    address_provider = address_provider or PsutilAddressProvider()

    app = Flask(__name__, static_folder=None)
    app.config["SETTINGS"] = settings
    app.config["BUILD_INFO"] = build
    app.logger.setLevel(settings.log_level)

    # If request logging is enabled, log each request with timing and status
    if settings.request_logging:
        @app.before_request
        def _log_request_start():
            g._req_start_time = time.time()

        @app.after_request
        def _log_request_end(response):
            start = getattr(g, "_req_start_time", None)
            duration = (time.time() - start) * 1000.0 if start else 0.0
            remote = request.remote_addr or "-"
            app.logger.info(f"{remote} {request.method} {request.path} {response.status_code} {duration:.2f}ms")
            return response

    @app.route("/", methods=ANY_METHOD)
    def whoami():
        """Full identity snapshot of this pod."""
        response = WhoAmIResponse(
            version=collectors.get_version_info(build),
            pod=collectors.get_pod_info(),
            environment=collectors.get_environment(),
            configmaps=collectors.get_config_maps(settings.config_dir),
            resources=collectors.get_resource_info(),
            timestamp=utc_timestamp(),
        )
        return jsonify(response.to_dict())

    @app.route("/whoami", methods=ANY_METHOD)
    def whoami_detail():
        """Echo how this request reached the pod."""
        detail = collectors.get_request_detail(request, address_provider)
        return jsonify(detail.to_dict())

    @app.route("/version", methods=ANY_METHOD)
    def get_version():
        return jsonify(collectors.get_version_info(build).to_dict())

    @app.route("/envs", methods=ANY_METHOD)
    def get_envs():
        return jsonify(collectors.get_environment())

    @app.route("/cm", methods=ANY_METHOD)
    def get_config_maps():
        return jsonify(collectors.get_config_maps(settings.config_dir).to_dict())

    @app.route("/healthz", methods=ANY_METHOD)
    def healthz():
        return jsonify({"status": "ok"}), 200

    @app.route("/readyz", methods=ANY_METHOD)
    def readyz():
        return jsonify({"status": "ready"}), 200

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.name.lower()}), e.code

    return app

