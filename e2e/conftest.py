"""
Pytest configuration and shared fixtures

Provides:
- Builders for implementation trees (servers/ and clients/ manifests)
- Mock proxies for scenario runner tests
- Locations of the stub implementations used by end-to-end tests
"""

import json
import shutil
import socket
import sys
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from e2e.framework.types import ClientResult

FIXTURES_DIR = Path(__file__).parent / "tests" / "fixtures"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "e2e: end-to-end tests launching real server and client processes"
    )


# =============================================================================
# Implementation Tree Fixtures
# =============================================================================


@pytest.fixture
def impl_root(tmp_path: Path) -> Path:
    """Empty implementations root"""
    root = tmp_path / "impls"
    (root / "servers").mkdir(parents=True)
    (root / "clients").mkdir(parents=True)
    return root


@pytest.fixture
def make_implementation(impl_root: Path):
    """Factory writing an implementation directory with manifest and run.sh."""

    def _make(
        kind: str,
        name: str,
        language="python",
        networks: Optional[list[str]] = None,
        endpoints: Optional[list[dict]] = None,
        manifest: Optional[dict] = None,
        run_script: Optional[str] = "#!/usr/bin/env bash\necho ok\n",
    ) -> Path:
        directory = impl_root / f"{kind}s" / name
        directory.mkdir(parents=True)

        if manifest is None:
            manifest = {"name": name, "type": kind, "language": language}
            if networks is not None:
                manifest["networks"] = networks
            if kind == "server":
                manifest["endpoints"] = (
                    endpoints if endpoints is not None else [{"path": "/protected"}]
                )

        (directory / "test.config.json").write_text(json.dumps(manifest))
        if run_script is not None:
            (directory / "run.sh").write_text(run_script)
        return directory

    return _make


# =============================================================================
# Mock Proxy Fixtures
# =============================================================================


@pytest.fixture
def mock_server():
    """Server proxy double that becomes healthy on the first probe"""
    server = MagicMock()
    server.name = "mock-server"
    server.start = AsyncMock()
    server.health = AsyncMock(return_value={"success": True})
    server.stop = AsyncMock()
    server.force_stop = AsyncMock()
    return server


@pytest.fixture
def mock_client():
    """Client proxy double whose call succeeds"""
    client = MagicMock()
    client.name = "mock-client"
    client.call = AsyncMock(
        return_value=ClientResult(
            success=True,
            data={"message": "Protected endpoint accessed successfully"},
            status_code=200,
        )
    )
    client.stop = AsyncMock()
    client.force_stop = AsyncMock()
    return client


@pytest.fixture
def no_sleep():
    """Injectable sleep that records intervals instead of waiting"""
    return AsyncMock()


# =============================================================================
# Stub Implementation Fixtures
# =============================================================================


@pytest.fixture
def stub_root() -> Path:
    """Implementations root holding the stub FastAPI server and httpx client"""
    if shutil.which("bash") is None:
        pytest.skip("bash is required to launch run.sh implementations")
    return FIXTURES_DIR


@pytest.fixture
def stub_python(monkeypatch):
    """Make run.sh launchers use the interpreter running the tests"""
    monkeypatch.setenv("PYTHON", sys.executable)


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
