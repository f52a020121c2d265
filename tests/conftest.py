from __future__ import annotations

import socket
from pathlib import Path

import pytest
from hypothesis import settings

from docdrift.core.context import RunContext

_ALLOWED_MARKERS = {"unit", "integration", "slow"}

settings.register_profile("docdrift", database=None, deadline=None)
settings.load_profile("docdrift")


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        names = {mark.name for mark in item.iter_markers()}
        if not names.intersection(_ALLOWED_MARKERS):
            item.add_marker("unit")


@pytest.fixture(autouse=True)
def no_network_for_unit(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> None:
    if request.node.get_closest_marker("integration") or request.node.get_closest_marker("slow"):
        return

    def _blocked(*_args: object, **_kwargs: object) -> socket.socket:
        raise RuntimeError("network disabled in unit tests")

    def _blocked_connect(*_args: object, **_kwargs: object) -> None:
        raise RuntimeError("network disabled in unit tests")

    monkeypatch.setattr(socket, "create_connection", _blocked)
    monkeypatch.setattr(socket.socket, "connect", _blocked_connect)


@pytest.fixture(autouse=True)
def clean_docdrift_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DOCDRIFT_CONFIG", "DOCDRIFT_HASH_ALGORITHM", "DOCDRIFT_LOG_JSON", "RUN_ID"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def ctx(tmp_path: Path) -> RunContext:
    return RunContext(run_id="pytest-run", base_dir=tmp_path, quiet=True)
