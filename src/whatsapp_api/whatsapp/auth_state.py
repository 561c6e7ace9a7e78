"""
File-backed credential store.

Keeps the device credentials in ``creds.json`` and every signal key in
its own ``<type>-<id>.json`` file inside the session directory, so the
session can be resumed after a restart without pairing again.
"""

import asyncio
import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..logger import logger

CREDS_FILE = "creds.json"


def _key_file_name(key_type: str, key_id: str) -> str:
    return f"{key_type}-{key_id}.json".replace("/", "__").replace(":", "-")


class KeyStore:
    """Signal key storage, one JSON file per key."""

    def __init__(self, folder: Path):
        self._folder = folder

    async def get(self, key_type: str, ids: list[str]) -> dict[str, Any]:
        """
        Read keys of one type.

        Args:
            key_type: Key family (e.g., "pre-key", "session")
            ids: Key identifiers to read

        Returns:
            Mapping of id to stored value; missing keys are omitted
        """
        found: dict[str, Any] = {}
        for key_id in ids:
            value = await asyncio.to_thread(self._read, _key_file_name(key_type, key_id))
            if value is not None:
                found[key_id] = value
        return found

    async def set(self, data: dict[str, dict[str, Any]]) -> None:
        """
        Write or delete keys.

        Args:
            data: {key_type: {key_id: value}}; a None value deletes the key
        """
        for key_type, entries in data.items():
            for key_id, value in entries.items():
                name = _key_file_name(key_type, key_id)
                if value is None:
                    await asyncio.to_thread(self._remove, name)
                else:
                    await asyncio.to_thread(self._write, name, value)

    def _read(self, name: str) -> Any:
        path = self._folder / name
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, name: str, value: Any) -> None:
        self._folder.mkdir(parents=True, exist_ok=True)
        (self._folder / name).write_text(json.dumps(value), encoding="utf-8")

    def _remove(self, name: str) -> None:
        (self._folder / name).unlink(missing_ok=True)


@dataclass
class AuthState:
    """Credentials plus key store handed to a new socket."""

    creds: dict[str, Any] = field(default_factory=dict)
    keys: KeyStore | None = None


class MultiFileAuthStore:
    """Credential store rooted at a session directory."""

    def __init__(self, session_path: str | Path):
        self.session_path = Path(session_path)
        self._state: AuthState | None = None

    def has_credentials(self) -> bool:
        return (self.session_path / CREDS_FILE).exists()

    async def load(self) -> AuthState:
        """
        Load the stored credentials, creating the session directory if needed.

        Returns:
            AuthState with the current credentials and a key store
        """
        await asyncio.to_thread(self.session_path.mkdir, parents=True, exist_ok=True)

        creds_path = self.session_path / CREDS_FILE
        creds: dict[str, Any] = {}
        if creds_path.exists():
            raw = await asyncio.to_thread(creds_path.read_text, encoding="utf-8")
            creds = json.loads(raw)
            logger.info(f"Loaded credentials from {creds_path}")
        else:
            logger.info(f"No stored credentials in {self.session_path}, a new pairing is required")

        self._state = AuthState(creds=creds, keys=KeyStore(self.session_path))
        return self._state

    async def save_creds(self, update: dict[str, Any] | None = None) -> None:
        """
        Merge a partial credential update and persist the result.

        Args:
            update: Changed credential fields (None just rewrites current state)
        """
        if self._state is None:
            self._state = AuthState(keys=KeyStore(self.session_path))
        if update:
            self._state.creds.update(update)

        payload = json.dumps(self._state.creds)
        await asyncio.to_thread(self._write_creds, payload)

    def _write_creds(self, payload: str) -> None:
        self.session_path.mkdir(parents=True, exist_ok=True)
        (self.session_path / CREDS_FILE).write_text(payload, encoding="utf-8")

    async def clear(self) -> None:
        """Recursively delete the session directory. Succeeds if already absent."""
        self._state = None
        try:
            await asyncio.to_thread(shutil.rmtree, self.session_path)
        except FileNotFoundError:
            return
