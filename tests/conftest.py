"""
Shared pytest fixtures for the FamilyHub vault test suite.

Autouse fixtures isolate tests from live application state:
  - Audit logger  -> temp directory (keeps test events out of ./audit_logs)
  - Settings      -> memory backend, fixed session token
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from familyhub.vault import AccessController, KeyVaultBackend, MemoryBackend

VAULT_URL = "https://familyhub.vault.test"


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test."""
    import familyhub.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    orig_init = audit_mod.AuditLogger.__init__

    def patched_init(self, log_dir=None):
        orig_init(self, log_dir=log_dir or tmp_path / "audit_logs")

    monkeypatch.setattr(audit_mod.AuditLogger, "__init__", patched_init)

    yield

    audit_mod._audit_logger = old_logger


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path):
    """Pin global settings to the memory backend and a known session token."""
    from familyhub.core import config

    old_settings = config._settings
    config.set_settings(config.VaultSettings(
        backend="memory",
        session_token="test-token",
        audit_log_dir=tmp_path / "audit_logs",
    ))

    yield

    config.set_settings(old_settings)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def controller(backend, clock):
    """AccessController over a memory backend with the default 3/15min policy."""
    return AccessController.from_backend(backend, clock=clock)


class FakeKeyVault:
    """Minimal Key Vault REST handler for httpx.MockTransport.

    Deletes are soft deletes, as on the real service: the name stays
    reserved and a PUT to it answers 409 until it is purged.
    """

    def __init__(self, page_size=2):
        self.secrets = {}
        self.deleted = set()
        self.page_size = page_size
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/secrets" and request.method == "GET":
            return self._list(request)

        name = path.split("/secrets/", 1)[-1]
        if request.method == "PUT":
            if name in self.deleted:
                return httpx.Response(409, json={"error": {"code": "Conflict"}})
            body = json.loads(request.content)
            version = f"v{len(self.requests)}"
            self.secrets[name] = (body["value"], body.get("tags", {}), version)
            return httpx.Response(200, json={
                "value": body["value"],
                "id": f"{VAULT_URL}/secrets/{name}/{version}",
                "tags": body.get("tags", {}),
            })
        if name not in self.secrets:
            return httpx.Response(404, json={"error": {"code": "SecretNotFound"}})
        if request.method == "GET":
            value, tags, version = self.secrets[name]
            return httpx.Response(200, json={
                "value": value,
                "id": f"{VAULT_URL}/secrets/{name}/{version}",
                "tags": tags,
            })
        if request.method == "DELETE":
            del self.secrets[name]
            self.deleted.add(name)
            return httpx.Response(200, json={})
        return httpx.Response(405)

    def _list(self, request):
        start = int(request.url.params.get("skip", "0"))
        names = sorted(self.secrets)
        chunk = names[start:start + self.page_size]
        body = {
            "value": [
                {"id": f"{VAULT_URL}/secrets/{n}", "tags": self.secrets[n][1]}
                for n in chunk
            ],
        }
        if start + self.page_size < len(names):
            body["nextLink"] = f"{VAULT_URL}/secrets?api-version=7.4&skip={start + self.page_size}"
        return httpx.Response(200, json=body)


@pytest.fixture
def fake_vault():
    return FakeKeyVault()


@pytest.fixture
def keyvault(fake_vault):
    """KeyVaultBackend wired to the in-process fake."""
    backend = KeyVaultBackend(VAULT_URL, token="t0k3n", transport=httpx.MockTransport(fake_vault.handler))
    yield backend
    backend.close()
