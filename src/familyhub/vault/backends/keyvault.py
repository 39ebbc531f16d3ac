# Vault - Managed Key Vault Backend
#
# Talks to an Azure Key Vault compatible REST API:
#   PUT    /secrets/{name}        set value + tags
#   GET    /secrets/{name}        read latest version (404 = not found)
#   DELETE /secrets/{name}        soft delete (404 = already gone)
#   GET    /secrets               enumerate properties, paged via nextLink
#
# Authentication is a bearer token supplied by the deployment (managed
# identity sidecar, CLI login, etc.); acquiring it is outside this module.
#
# No retries: each call is one round trip bounded by the client timeout.
# The service has no conditional write, so compare_and_set() is not
# supported and the lockout tracker falls back to read-modify-write.

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..exceptions import StoreError, StoreUnavailable
from .base import SecretBackend, SecretProperties, StoredSecret, matches_tags

logger = logging.getLogger(__name__)

API_VERSION = "7.4"
DEFAULT_TIMEOUT_SEC = 10.0
LIST_PAGE_SIZE = 25
MAX_LIST_PAGES = 100


class KeyVaultBackend(SecretBackend):
    """Managed Key Vault backend over httpx.

    Usage::

        backend = KeyVaultBackend("https://myvault.vault.azure.net", token="...")
        backend.set("alice-financial-bank", "12345678", {"category": "financial"})
    """

    name = "keyvault"
    supports_cas = False

    def __init__(
        self,
        vault_url: str,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SEC,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        if not vault_url:
            raise StoreUnavailable("AZURE_KEY_VAULT_URL environment variable is not set")

        self.vault_url = vault_url.rstrip("/")
        headers = {
            "Accept": "application/json",
            "User-Agent": "FamilyHub/0.3",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.Client(
            base_url=self.vault_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        url: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Execute one request, mapping transport and auth failures.

        params=None sends the default api-version; an empty dict sends the
        URL exactly as given (nextLink already carries its own query).
        """
        if params is None:
            params = {"api-version": API_VERSION}
        kwargs: Dict[str, Any] = {"json": json}
        if params:
            # httpx replaces the URL query string whenever params is passed
            kwargs["params"] = params
        try:
            resp = self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise StoreUnavailable(f"Key Vault request timed out: {e}") from e
        except httpx.TransportError as e:
            raise StoreUnavailable(f"Key Vault unreachable: {e}") from e

        if resp.status_code in (401, 403):
            raise StoreUnavailable(
                f"Key Vault rejected credentials ({resp.status_code}): {self._error_code(resp)}"
            )
        if resp.status_code >= 500:
            raise StoreUnavailable(
                f"Key Vault server error {resp.status_code}: {self._error_code(resp)}"
            )
        return resp

    @staticmethod
    def _error_code(resp: httpx.Response) -> str:
        try:
            return resp.json().get("error", {}).get("code", "") or resp.reason_phrase
        except ValueError:
            return resp.reason_phrase

    @staticmethod
    def _is_not_found(resp: httpx.Response) -> bool:
        if resp.status_code == 404:
            return True
        try:
            return resp.json().get("error", {}).get("code") == "SecretNotFound"
        except ValueError:
            return False

    def _fail(self, action: str, name: str, resp: httpx.Response):
        raise StoreError(
            f"Key Vault {action} of {name!r} failed ({resp.status_code}): {self._error_code(resp)}"
        )

    @staticmethod
    def _secret_path(name: str) -> str:
        return f"/secrets/{quote(name, safe='')}"

    @staticmethod
    def _name_from_id(secret_id: str) -> str:
        # https://{vault}/secrets/{name}[/{version}]
        parts = secret_id.rstrip("/").split("/secrets/", 1)[-1].split("/")
        return parts[0]

    @staticmethod
    def _version_from_id(secret_id: str) -> Optional[str]:
        parts = secret_id.rstrip("/").split("/secrets/", 1)[-1].split("/")
        return parts[1] if len(parts) > 1 else None

    # ------------------------------------------------------------------
    # SecretBackend interface
    # ------------------------------------------------------------------

    def set(self, name: str, value: str, tags: Optional[Dict[str, str]] = None) -> StoredSecret:
        resp = self._request(
            "PUT",
            self._secret_path(name),
            json={"value": value, "tags": tags or {}},
        )
        if resp.status_code >= 400:
            self._fail("set", name, resp)

        data = resp.json()
        return StoredSecret(
            name=name,
            value=value,
            tags=data.get("tags") or dict(tags or {}),
            version=self._version_from_id(data.get("id", "")),
        )

    def get(self, name: str) -> Optional[StoredSecret]:
        resp = self._request("GET", self._secret_path(name))
        if resp.status_code >= 400:
            if self._is_not_found(resp):
                return None
            self._fail("get", name, resp)

        data = resp.json()
        value = data.get("value")
        if value is None:
            return None
        return StoredSecret(
            name=name,
            value=value,
            tags=data.get("tags") or {},
            version=self._version_from_id(data.get("id", "")),
        )

    def delete(self, name: str) -> bool:
        resp = self._request("DELETE", self._secret_path(name))
        if resp.status_code >= 400:
            if self._is_not_found(resp):
                return False
            self._fail("delete", name, resp)
        return True

    def list_properties(self, tag_filter: Optional[Dict[str, str]] = None) -> List[SecretProperties]:
        results: List[SecretProperties] = []
        url = "/secrets"
        params: Optional[Dict[str, Any]] = {"api-version": API_VERSION, "maxresults": LIST_PAGE_SIZE}
        page = 0

        while url and page < MAX_LIST_PAGES:
            resp = self._request("GET", url, params=params)
            if resp.status_code >= 400:
                self._fail("list", "*", resp)

            data = resp.json()
            for item in data.get("value", []):
                tags = item.get("tags") or {}
                if not matches_tags(tags, tag_filter):
                    continue
                results.append(SecretProperties(
                    name=self._name_from_id(item.get("id", "")),
                    tags=tags,
                ))

            # nextLink is an absolute URL carrying api-version and the page token
            url = data.get("nextLink")
            params = {}
            page += 1

        if url:
            logger.warning("Key Vault listing truncated after %d pages", MAX_LIST_PAGES)

        return results

    def close(self) -> None:
        self._client.close()
