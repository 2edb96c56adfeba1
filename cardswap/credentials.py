"""
Credential discovery and storage.

Discovery order (first match wins):
    1. Host-provided key selection, when present and holding a selected key
    2. Locally persisted entry under ``gemini_api_key``
    3. None -> manual entry required

The provider variant (HostManaged or Manual) is chosen once at startup by
``select_credential_provider``; the controller only talks to the interface.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Sequence

from .errors import InvalidCredentialError

log = logging.getLogger("cardswap.credentials")

STORED_KEY_NAME = "gemini_api_key"
HOST_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


class KeyValueStore:
    """Small persistent string store backed by one JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, IOError):
            log.warning(f"Ignoring unreadable settings file {self.path}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            pass

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str):
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str):
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


class HostKeySelector:
    """
    Host-provided key selection.

    The host injects the key through the process environment; a key counts as
    selected while one of the variables is set and the host has not been told
    the key was rejected.
    """

    def __init__(self, env_vars: Sequence[str] = HOST_KEY_ENV_VARS, environ=None):
        self.env_vars = tuple(env_vars)
        self._environ = environ if environ is not None else os.environ
        self._rejected = False

    @property
    def api_key(self) -> Optional[str]:
        for name in self.env_vars:
            value = self._environ.get(name)
            if value and value.strip():
                return value.strip()
        return None

    def available(self) -> bool:
        return self.api_key is not None

    async def has_selected_key(self) -> bool:
        return not self._rejected and self.api_key is not None

    async def open_select_key(self) -> Optional[str]:
        """Re-read the host key; clears any earlier rejection."""
        self._rejected = False
        return self.api_key

    def mark_rejected(self):
        self._rejected = True


def normalize_manual_key(raw: Optional[str]) -> str:
    key = (raw or "").strip()
    if not key:
        raise InvalidCredentialError("API key is empty")
    return key


class CredentialProvider(ABC):
    """Where the session's API key comes from."""

    mode = "manual"
    allows_manual_entry = True

    def __init__(self, store: KeyValueStore):
        self.store = store

    @abstractmethod
    async def discover(self) -> Optional[str]:
        """Return a usable key, or None when the user must supply one."""

    def submit(self, raw_key: str) -> str:
        """Accept a manually entered key and persist it."""
        key = normalize_manual_key(raw_key)
        self.store.set(STORED_KEY_NAME, key)
        log.info("Stored manually entered API key")
        return key

    async def select(self) -> Optional[str]:
        """Ask the host to (re)select a key. Manual providers have nothing to ask."""
        return None

    def clear(self):
        """Forget the stored key. Safe to call repeatedly."""
        self.store.remove(STORED_KEY_NAME)

    @abstractmethod
    def on_authentication_failure(self):
        """React to the remote service rejecting the current key."""


class ManualCredentialProvider(CredentialProvider):
    mode = "manual"

    async def discover(self) -> Optional[str]:
        key = self.store.get(STORED_KEY_NAME)
        return key or None

    def on_authentication_failure(self):
        self.clear()


class HostManagedCredentialProvider(CredentialProvider):
    """Key selected by the host; stored manual key as a fallback when allowed."""

    mode = "host"

    def __init__(self, store: KeyValueStore, host: HostKeySelector, allow_manual: bool = True):
        super().__init__(store)
        self.host = host
        self.allows_manual_entry = allow_manual
        self._source: Optional[str] = None

    async def discover(self) -> Optional[str]:
        if await self.host.has_selected_key():
            self._source = "host"
            return self.host.api_key
        if self.allows_manual_entry:
            key = self.store.get(STORED_KEY_NAME)
            if key:
                self._source = "store"
                return key
        self._source = None
        return None

    def submit(self, raw_key: str) -> str:
        if not self.allows_manual_entry:
            raise InvalidCredentialError("Manual key entry is disabled for this host")
        key = super().submit(raw_key)
        self._source = "store"
        return key

    async def select(self) -> Optional[str]:
        key = await self.host.open_select_key()
        self._source = "host" if key else None
        return key

    def clear(self):
        super().clear()
        self.host.mark_rejected()
        self._source = None

    def on_authentication_failure(self):
        if self._source == "store":
            self.clear()
        else:
            self.host.mark_rejected()
        self._source = None


def select_credential_provider(
    store: KeyValueStore,
    host: Optional[HostKeySelector] = None,
    allow_manual: bool = True,
) -> CredentialProvider:
    """Pick the provider variant once, at startup."""
    if host is not None and (host.available() or not allow_manual):
        return HostManagedCredentialProvider(store, host, allow_manual=allow_manual)
    return ManualCredentialProvider(store)
