"""Credential storage."""

import json
import logging
from pathlib import Path
from typing import Any

from filelock import FileLock

from grantflow.auth.types import Credential
from grantflow.config.paths import get_credentials_path

logger = logging.getLogger(__name__)

DEFAULT_KEY = "google"


class CredentialStore:
    """Read/write credentials from ~/.grantflow/credentials.json.

    Uses file locking for safe concurrent access. File permissions
    are set to 0o600 (owner-only read/write).
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or get_credentials_path()
        self._lock = FileLock(str(self._path) + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {}
        try:
            return json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read %s: %s", self._path.name, e)
            return {}

    def _write_all(self, data: dict[str, dict[str, Any]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2) + "\n")
        self._path.chmod(0o600)

    def load(self, key: str = DEFAULT_KEY) -> Credential | None:
        """Load the credential stored under ``key``, or None."""
        with self._lock:
            data = self._read_all()
        entry = data.get(key)
        if not entry:
            return None
        try:
            return Credential.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Invalid credential for %s: %s", key, e)
            return None

    def save(self, key: str, credential: Credential) -> None:
        """Save a credential under ``key``."""
        with self._lock:
            data = self._read_all()
            data[key] = credential.to_dict()
            self._write_all(data)
        logger.info("Saved credential for %s", key)

    def remove(self, key: str = DEFAULT_KEY) -> bool:
        """Remove a credential.

        Returns:
            True if it was removed, False if not found.
        """
        with self._lock:
            data = self._read_all()
            if key not in data:
                return False
            del data[key]
            self._write_all(data)
        logger.info("Removed credential for %s", key)
        return True

    def list_keys(self) -> list[str]:
        """List all keys with stored credentials."""
        with self._lock:
            data = self._read_all()
        return list(data.keys())
