"""Fixtures shared by the eks-deploy tests."""

from collections.abc import AsyncGenerator
import os
from pathlib import Path

from aiohttp.test_utils import TestServer
import pytest

from . import FakeBin, mock_api_app


@pytest.fixture(name="fake_bin")
def fake_bin_fixture(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeBin:
    """Fixture that puts a directory for fake tools first on the PATH."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    log = tmp_path / "calls.log"
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setenv("CALLS_LOG", str(log))
    return FakeBin(bin_dir, log)


@pytest.fixture(name="api_server")
async def api_server_fixture() -> AsyncGenerator[TestServer, None]:
    """Fixture that serves the mock API on a local port."""
    server = TestServer(mock_api_app())
    await server.start_server()
    yield server
    await server.close()
