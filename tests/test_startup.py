"""
tests/test_startup.py — API Process Wiring
===========================================
Covers what ``cairn.api.deps`` builds before the first request:

- JWT_SECRET validation (missing, blank, short, weak defaults)
- The admin guard on decoded tokens
- Config lookup via CAIRN_CONFIG
- The cached runtime: SQL-backed store plus a notifier from config,
  closed again by the app lifespan
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import jwt
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from cairn.api import deps
from cairn.config import config_from_mapping
from cairn.database.kv import SqlKVStore


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


@pytest.fixture
def fresh_caches():
    deps.get_config.cache_clear()
    deps.get_runtime.cache_clear()
    yield
    deps.get_config.cache_clear()
    deps.get_runtime.cache_clear()


@pytest.fixture
def wired(db_engine, fresh_caches):
    """Patch the engine and config providers that get_runtime() reads."""
    cfg = config_from_mapping({"notify_url": "https://notify.example.test/", "notify_source": "tests"})
    with patch.object(deps, "get_engine", return_value=db_engine), \
         patch.object(deps, "get_config", return_value=cfg):
        yield cfg


# ===========================================================================
# JWT secret
# ===========================================================================
class TestJwtSecret:
    @pytest.mark.parametrize("secret, message", [
        ("", "is not set"),
        ("cairn-dev-secret-change-me", "known weak default"),
        ("change-me", "known weak default"),
        ("x" * 31, "too short"),
    ])
    def test_rejected(self, monkeypatch, secret, message):
        monkeypatch.setenv("JWT_SECRET", secret)
        with pytest.raises(RuntimeError, match=message):
            deps._load_jwt_secret()

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(RuntimeError, match="is not set"):
            deps._load_jwt_secret()

    def test_accepted(self, monkeypatch):
        monkeypatch.setenv("JWT_SECRET", "s" * 32)
        assert deps._load_jwt_secret() == "s" * 32


class TestAdminGuard:
    def _bearer(self, claims: dict, secret: str = deps.JWT_SECRET) -> str:
        return "Bearer " + jwt.encode(claims, secret, algorithm=deps.JWT_ALGORITHM)

    def test_admin_payload_returned(self):
        payload = deps.get_current_admin(self._bearer({"sub": "1", "is_admin": True}))
        assert payload["sub"] == "1"

    @pytest.mark.parametrize("header", [None, "Token abc", "Bearer not-a-jwt"])
    def test_unauthenticated(self, header):
        with pytest.raises(HTTPException) as exc:
            deps.get_current_admin(header)
        assert exc.value.status_code == 401

    def test_signed_with_other_secret(self):
        with pytest.raises(HTTPException) as exc:
            deps.get_current_admin(self._bearer({"is_admin": True}, secret="o" * 40))
        assert exc.value.status_code == 401

    def test_non_admin(self):
        with pytest.raises(HTTPException) as exc:
            deps.get_current_admin(self._bearer({"sub": "2", "is_admin": False}))
        assert exc.value.status_code == 403


# ===========================================================================
# Config & runtime
# ===========================================================================
class TestProviders:
    def test_config_path_from_env(self, monkeypatch, tmp_path, fresh_caches):
        path = tmp_path / "cairn.yaml"
        path.write_text("leaderboard_size: 40\n", encoding="utf-8")
        monkeypatch.setenv("CAIRN_CONFIG", str(path))
        assert deps.get_config().leaderboard_size == 40

    def test_missing_config_file(self, monkeypatch, tmp_path, fresh_caches):
        monkeypatch.setenv("CAIRN_CONFIG", str(tmp_path / "absent.yaml"))
        with pytest.raises(FileNotFoundError):
            deps.get_config()

    def test_runtime_wiring(self, wired, db_engine):
        rt = deps.get_runtime()
        try:
            assert isinstance(rt.kv, SqlKVStore)
            assert rt.cache_kv is rt.kv
            assert rt.cfg is wired
            assert rt.notifier.base_url == "https://notify.example.test"
            assert rt.notifier.source == "tests"
            assert deps.get_runtime() is rt
        finally:
            run_async(rt.notifier.aclose())

    def test_runtime_store_uses_engine(self, wired):
        rt = deps.get_runtime()
        try:
            run_async(rt.kv.put("startup:check", "1"))
            assert run_async(rt.kv.get("startup:check")) == "1"
        finally:
            run_async(rt.notifier.aclose())

    def test_lifespan_closes_cached_runtime(self, wired):
        from cairn.api import main

        rt = deps.get_runtime()
        with TestClient(main.app) as client:
            assert client.get("/api/health").status_code == 200
            assert not rt.notifier._client.is_closed
        assert rt.notifier._client.is_closed

    def test_lifespan_without_runtime(self, fresh_caches):
        from cairn.api import main

        with TestClient(main.app) as client:
            assert client.get("/api/health").status_code == 200
        assert deps.get_runtime.cache_info().currsize == 0
