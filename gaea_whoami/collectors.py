"""Introspection collectors.

Each collector takes a snapshot of process state (environment, filesystem,
network interfaces) and never raises: a missing source becomes an empty
string or an empty collection.
"""
import ipaddress
import logging
import os
import socket
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol

import psutil
from werkzeug.datastructures import Headers

from gaea_whoami.config import BuildInfo
from gaea_whoami.models import (
    ConfigMapInfo,
    PodInfo,
    ResourceInfo,
    VersionInfo,
    WhoAmIDetailResponse,
    utc_timestamp,
)

ENV_PREFIX = "GAEA"

logger = logging.getLogger(__name__)


class LocalAddressProvider(Protocol):
    def first_ipv4(self) -> str:
        """Return the first non-loopback IPv4 address, or "" if there is none."""


class PsutilAddressProvider:
    """Reads interface addresses through psutil on every call."""

    def first_ipv4(self) -> str:
        try:
            interfaces = psutil.net_if_addrs()
        except (OSError, psutil.Error) as e:
            logger.debug(f"Interface enumeration failed: {e}")
            return ""
        for addresses in interfaces.values():
            for addr in addresses:
                if addr.family != socket.AF_INET:
                    continue
                try:
                    if ipaddress.IPv4Address(addr.address).is_loopback:
                        continue
                except ValueError:
                    continue
                return addr.address
        return ""


def get_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return ""


def runtime_version(environ: Optional[Mapping[str, str]] = None) -> str:
    """Turn GOLANG_VERSION="go1.22.1 linux/amd64" into "1.22.1"."""
    environ = os.environ if environ is None else environ
    tokens = environ.get("GOLANG_VERSION", "").split(" ")
    token = tokens[0]
    return token[2:] if token.startswith("go") else token


def get_version_info(build: BuildInfo) -> VersionInfo:
    return VersionInfo(
        version=build.version,
        git_commit=build.git_commit,
        build_time=build.build_time,
        go_version=runtime_version(),
    )


def get_pod_info() -> PodInfo:
    return PodInfo(
        hostname=get_hostname(),
        pod_ip=os.getenv("POD_IP", ""),
        host_ip=os.getenv("HOST_IP", ""),
        namespace=os.getenv("POD_NAMESPACE", ""),
    )


def get_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Return every variable whose name starts with GAEA, values unredacted."""
    environ = os.environ if environ is None else environ
    return {key: value for key, value in environ.items() if key.startswith(ENV_PREFIX)}


def get_resource_info() -> ResourceInfo:
    # Injected by the orchestrator (downward API resourceFieldRef); passed through as-is
    return ResourceInfo(
        cpu_request=os.getenv("CPU_REQUEST", ""),
        cpu_limit=os.getenv("CPU_LIMIT", ""),
        mem_request=os.getenv("MEM_REQUEST", ""),
        mem_limit=os.getenv("MEM_LIMIT", ""),
    )


class ConfigTreeReader:
    """Best-effort recursive reader for a mounted config directory.

    Unreadable directories and files are skipped rather than reported.
    ``skipped`` counts them for the debug log only; it is not part of the
    response.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.skipped = 0

    def _on_walk_error(self, error: OSError) -> None:
        self.skipped += 1
        logger.debug(f"Skipping unreadable directory {error.filename}: {error.strerror}")

    def read(self) -> Dict[str, str]:
        files: Dict[str, str] = {}
        if not os.path.exists(self.root):
            return files
        # Directory symlinks (e.g. ..data in projected volumes) are not descended into
        for dirpath, _dirnames, filenames in os.walk(self.root, onerror=self._on_walk_error):
            for name in filenames:
                path = Path(dirpath) / name
                try:
                    content = path.read_bytes().decode("utf-8", errors="replace")
                except OSError as e:
                    self.skipped += 1
                    logger.debug(f"Skipping unreadable file {path}: {e}")
                    continue
                files[path.relative_to(self.root).as_posix()] = content
        if self.skipped:
            logger.debug(f"Read {len(files)} config files from {self.root}, skipped {self.skipped}")
        return files


def get_config_maps(root: Path) -> ConfigMapInfo:
    return ConfigMapInfo(files=ConfigTreeReader(root).read())


def format_remote_addr(environ: Mapping[str, str]) -> str:
    host = environ.get("REMOTE_ADDR") or ""
    port = environ.get("REMOTE_PORT") or ""
    if not port:
        return host
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def resolve_client_ip(headers: Mapping[str, str], remote_addr: str) -> str:
    """X-Forwarded-For (first hop) wins over X-Real-IP, which wins over the peer."""
    forwarded = headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return remote_addr.strip()


def collect_headers(headers: Headers) -> Dict[str, List[str]]:
    """Request headers as name -> values, Host excluded.

    Names are as WSGI reports them (X-Real-Ip), and repeated headers arrive
    already joined with ", ".
    """
    collected: Dict[str, List[str]] = {}
    for name, value in headers.items():
        if name.lower() == "host":
            continue
        collected.setdefault(name, []).append(value)
    return collected


def get_request_detail(request, address_provider: LocalAddressProvider) -> WhoAmIDetailResponse:
    remote_addr = format_remote_addr(request.environ)
    return WhoAmIDetailResponse(
        headers=collect_headers(request.headers),
        client_ip=resolve_client_ip(request.headers, remote_addr),
        remote_ip=remote_addr,
        pod_ip=address_provider.first_ipv4(),
        host_ip=os.getenv("HOST_IP", ""),
        hostname=get_hostname(),
        method=request.method,
        path=request.path,
        protocol=request.environ.get("SERVER_PROTOCOL", ""),
        timestamp=utc_timestamp(),
    )
