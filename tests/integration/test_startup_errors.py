"""Tests for server startup scenarios.

Covers:
- Wrong-type config values (process exits before serving)
- Non-existent db_path parent directories (auto-created)
- Unwriteable db_path parent directory (startup fails)
- Lifespan wiring and teardown
"""

from __future__ import annotations

import os
import subprocess
import sys
from typing import TYPE_CHECKING

import aiosqlite
import pytest

from ghsnippets.config import Settings
from ghsnippets.server import create_app

if TYPE_CHECKING:
    from pathlib import Path


def _run_and_wait(env: dict[str, str], timeout: int = 10) -> subprocess.CompletedProcess[str]:
    """Start the server and wait for it to exit. Only for crash scenarios."""
    return subprocess.run(
        [sys.executable, "-m", "ghsnippets.server"],
        stdin=subprocess.DEVNULL,
        capture_output=True,
        text=True,
        timeout=timeout,
        env=env,
    )


class TestBadConfigType:
    def test_crashes_on_wrong_port_type(self, subprocess_env: dict[str, str]) -> None:
        """A non-integer port value causes a non-zero exit before uvicorn starts."""
        env = {**subprocess_env, "GHSNIPPETS__SERVER__PORT": "not-a-number"}
        result = _run_and_wait(env)
        assert result.returncode != 0
        assert "port" in result.stderr

    def test_crashes_on_out_of_range_retry_attempts(self, subprocess_env: dict[str, str]) -> None:
        env = {**subprocess_env, "GHSNIPPETS__RETRY__MAX_ATTEMPTS": "0"}
        result = _run_and_wait(env)
        assert result.returncode != 0


class TestLifespan:
    async def test_missing_parent_dirs_are_auto_created(self, tmp_path: Path) -> None:
        deep_path = tmp_path / "a" / "b" / "c" / "cache.db"
        assert not deep_path.parent.exists()

        app = create_app(Settings(cache={"db_path": str(deep_path)}))
        async with app.router.lifespan_context(app):
            state = app.state.ghsnippets
            assert state is not None
            assert (await state.cache.stats()).keys == 0

        assert deep_path.exists()

    async def test_teardown_stops_sweeper_and_client(self, tmp_path: Path) -> None:
        app = create_app(Settings(cache={"db_path": str(tmp_path / "cache.db")}))
        async with app.router.lifespan_context(app):
            state = app.state.ghsnippets
            sweeper = state.sweeper
            client = state.http_client

        assert sweeper is not None
        assert sweeper.done()
        assert client is not None
        assert client.is_closed
        assert app.state.ghsnippets is None

    @pytest.mark.skipif(
        os.name == "nt" or (hasattr(os, "getuid") and os.getuid() == 0),
        reason="Permission checks don't apply on Windows or when running as root.",
    )
    async def test_unwriteable_db_path_fails_startup(self, tmp_path: Path) -> None:
        """mkdir succeeds on the existing directory, but SQLite cannot create the file."""
        readonly = tmp_path / "readonly"
        readonly.mkdir()
        readonly.chmod(0o555)

        try:
            app = create_app(Settings(cache={"db_path": str(readonly / "cache.db")}))
            with pytest.raises(aiosqlite.OperationalError):
                async with app.router.lifespan_context(app):
                    pass
        finally:
            readonly.chmod(0o755)
