from __future__ import annotations

import os
from pathlib import Path

import pytest

from gaea_whoami.app import create_app
from gaea_whoami.config import BuildInfo, Settings


class FakeAddressProvider:
    def __init__(self, address: str = "10.244.1.7") -> None:
        self.address = address
        self.calls = 0

    def first_ipv4(self) -> str:
        self.calls += 1
        return self.address


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in list(os.environ):
        if key.startswith("GAEA"):
            monkeypatch.delenv(key)
    for key in (
        "GOLANG_VERSION",
        "POD_IP",
        "HOST_IP",
        "POD_NAMESPACE",
        "CPU_REQUEST",
        "CPU_LIMIT",
        "MEM_REQUEST",
        "MEM_LIMIT",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "config"


@pytest.fixture
def address_provider() -> FakeAddressProvider:
    return FakeAddressProvider()


@pytest.fixture
def app(clean_env, config_dir: Path, address_provider: FakeAddressProvider):
    settings = Settings(config_dir=config_dir)
    build = BuildInfo(version="1.4.2", git_commit="9f3c2ab", build_time="2026-10-01T12:00:00Z")
    return create_app(settings, build=build, address_provider=address_provider)


@pytest.fixture
def client(app):
    return app.test_client()
