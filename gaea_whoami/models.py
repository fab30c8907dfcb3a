"""Response types.

Every type is a frozen, request-scoped snapshot. ``to_dict`` produces the
JSON-ready mapping; fields listed in ``_omit_empty`` are dropped when they
hold an empty string.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Dict, List, Optional


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """RFC 3339 UTC timestamp with second precision, e.g. 2026-10-19T08:15:00Z."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class _Snapshot:
    _omit_empty = ()

    def to_dict(self) -> dict:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in self._omit_empty and value == "":
                continue
            if isinstance(value, _Snapshot):
                value = value.to_dict()
            elif isinstance(value, dict):
                value = dict(value)
            out[f.name] = value
        return out


@dataclass(frozen=True)
class VersionInfo(_Snapshot):
    version: str
    git_commit: str
    build_time: str
    go_version: str


@dataclass(frozen=True)
class PodInfo(_Snapshot):
    _omit_empty = ("pod_ip", "host_ip", "namespace")

    hostname: str
    pod_ip: str = ""
    host_ip: str = ""
    namespace: str = ""


@dataclass(frozen=True)
class ResourceInfo(_Snapshot):
    _omit_empty = ("cpu_request", "cpu_limit", "mem_request", "mem_limit")

    cpu_request: str = ""
    cpu_limit: str = ""
    mem_request: str = ""
    mem_limit: str = ""


@dataclass(frozen=True)
class ConfigMapInfo(_Snapshot):
    files: Dict[str, str] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.files)

    def to_dict(self) -> dict:
        return {"files": dict(self.files), "count": self.count}


@dataclass(frozen=True)
class WhoAmIResponse(_Snapshot):
    version: VersionInfo
    pod: PodInfo
    environment: Dict[str, str]
    configmaps: ConfigMapInfo
    resources: ResourceInfo
    timestamp: str


@dataclass(frozen=True)
class WhoAmIDetailResponse(_Snapshot):
    _omit_empty = ("pod_ip", "host_ip")

    headers: Dict[str, List[str]]
    client_ip: str
    remote_ip: str
    pod_ip: str
    host_ip: str
    hostname: str
    method: str
    path: str
    protocol: str
    timestamp: str
