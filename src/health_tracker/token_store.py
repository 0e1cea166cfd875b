"""Persistent storage for the access/refresh token pair.

The pair is kept in one Fernet-encrypted file readable only by its owner.
The encryption key comes from the system keyring when one is available,
otherwise from a ``.key`` file created next to the token file.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
from pathlib import Path

import keyring
from cryptography.fernet import Fernet, InvalidToken
from keyring.errors import KeyringError
from pydantic import ValidationError

from health_tracker.models.auth import TokenPair, TokenResponse
from health_tracker.utils.errors import StorageUnavailable

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "health-tracker"
KEYRING_KEY_NAME = "token-encryption-key"
FILE_MODE = 0o600


class TokenStore:
    """Token pair persisted as a single encrypted file.

    Both tokens live in one file that is replaced atomically, so a reader
    never sees a new access token next to a stale refresh token. The
    decrypted content holds two slots, ``accessToken`` and ``refreshToken``.

    Args:
        path: Token file location.
        key: Fernet key to use. When omitted the key is looked up in the
            keyring under *keyring_service*, then in ``<path>.key``.
        keyring_service: Keyring service name, or None to skip the keyring.
    """

    def __init__(
        self,
        path: str | Path,
        key: bytes | None = None,
        keyring_service: str | None = KEYRING_SERVICE,
    ) -> None:
        self._file = Path(path)
        self._key = key
        self._keyring_service = keyring_service
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._file

    @property
    def key_path(self) -> Path:
        return self._file.with_name(self._file.name + ".key")

    async def save(self, pair: TokenPair) -> None:
        """Persist both tokens, replacing any previous pair."""
        await asyncio.to_thread(self._write, pair)

    async def load(self) -> TokenPair | None:
        """Return the stored pair, or None if never saved or cleared."""
        return await asyncio.to_thread(self._read)

    async def clear(self) -> None:
        """Remove both tokens. Safe to call when nothing is stored."""
        await asyncio.to_thread(self._remove)

    # ── encryption key ────────────────────────────────────────────────

    def _fernet(self) -> Fernet:
        with self._lock:
            if self._key is None:
                self._key = self._keyring_key() or self._file_key()
        try:
            return Fernet(self._key)
        except (ValueError, TypeError) as e:
            raise StorageUnavailable(f"Token encryption key is invalid: {e}") from e

    def _keyring_key(self) -> bytes | None:
        if self._keyring_service is None:
            return None
        try:
            stored = keyring.get_password(self._keyring_service, KEYRING_KEY_NAME)
            if stored:
                return stored.encode()
            key = Fernet.generate_key()
            keyring.set_password(self._keyring_service, KEYRING_KEY_NAME, key.decode())
            return key
        except KeyringError as e:
            logger.debug(f"Keyring not available, using key file: {e}")
            return None

    def _file_key(self) -> bytes:
        key_path = self.key_path
        try:
            key_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, FILE_MODE)
        except FileExistsError:
            try:
                return key_path.read_bytes().strip()
            except OSError as e:
                raise StorageUnavailable(f"Could not read key file {key_path}: {e}") from e
        except OSError as e:
            raise StorageUnavailable(f"Could not create key file {key_path}: {e}") from e

        key = Fernet.generate_key()
        with os.fdopen(fd, "wb") as f:
            f.write(key)
        return key

    # ── file I/O ──────────────────────────────────────────────────────

    def _write(self, pair: TokenPair) -> None:
        data = json.dumps(pair.model_dump(by_alias=True)).encode()
        token = self._fernet().encrypt(data)
        tmp = None
        try:
            self._file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            # mkstemp creates the file with mode 0600; each write gets its own name
            with tempfile.NamedTemporaryFile(
                "wb", dir=self._file.parent, prefix=self._file.name + ".", suffix=".tmp", delete=False,
            ) as f:
                tmp = f.name
                f.write(token)
            os.chmod(tmp, FILE_MODE)
            os.replace(tmp, self._file)
        except OSError as e:
            if tmp is not None:
                Path(tmp).unlink(missing_ok=True)
            raise StorageUnavailable(f"Could not write token file {self._file}: {e}") from e

    def _read(self) -> TokenPair | None:
        try:
            token = self._file.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailable(f"Could not read token file {self._file}: {e}") from e

        try:
            data = json.loads(self._fernet().decrypt(token))
        except InvalidToken as e:
            raise StorageUnavailable(f"Could not decrypt token file {self._file}") from e
        except ValueError as e:
            raise StorageUnavailable(f"Could not read token file {self._file}: {e}") from e

        if not isinstance(data, dict):
            raise StorageUnavailable(f"Token file {self._file} is not a JSON object")
        try:
            pair = TokenResponse(**data).to_pair()
        except ValidationError as e:
            raise StorageUnavailable(f"Token file {self._file} is malformed: {e}") from e
        if pair is None:
            logger.warning("Token file %s holds a partial pair, treating as absent", self._file)
        return pair

    def _remove(self) -> None:
        try:
            self._file.unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Could not remove token file {self._file}: {e}") from e


class MemoryTokenStore:
    """In-process token store with the same interface as TokenStore."""

    def __init__(self, pair: TokenPair | None = None) -> None:
        self._pair = pair

    async def save(self, pair: TokenPair) -> None:
        self._pair = pair

    async def load(self) -> TokenPair | None:
        return self._pair

    async def clear(self) -> None:
        self._pair = None
