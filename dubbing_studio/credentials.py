"""API key pool with round-robin failover on quota and auth errors."""

import logging
import os
from typing import Callable, TypeVar

from dubbing_studio.constants import CREDENTIALS_ENV_VAR, RECOVERABLE_ERROR_MARKERS
from dubbing_studio.errors import CredentialsExhaustedError, NoCredentialsError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_credentials(raw: str) -> list[str]:
    """Split a newline-delimited key list, dropping blank entries."""
    return [line.strip() for line in raw.splitlines() if line.strip()]


def load_credentials(path: str | None = None) -> list[str]:
    """Load keys from a file, or from the environment when no path is given.

    Returns an empty list if nothing is configured.
    """
    if path:
        with open(path, encoding="utf-8") as f:
            return parse_credentials(f.read())
    return parse_credentials(os.environ.get(CREDENTIALS_ENV_VAR, ""))


def is_recoverable_error(error: Exception) -> bool:
    """Quota exhaustion and invalid-key failures warrant trying the next key."""
    if getattr(error, "code", None) == 429:
        return True
    message = str(error)
    return any(marker in message for marker in RECOVERABLE_ERROR_MARKERS)


class CredentialRotator:
    """Runs remote calls against a pool of API keys.

    The cursor is sticky: it points at the key that last succeeded, and every
    call starts there. Each call visits a key at most once.
    """

    def __init__(self, keys: list[str] | None = None):
        self._keys = list(keys or [])
        self._cursor = 0

    @property
    def keys(self) -> list[str]:
        return list(self._keys)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current_key(self) -> str | None:
        if not self._keys:
            return None
        return self._keys[self._cursor]

    def set_keys(self, keys: list[str]) -> None:
        """Replace the pool and restart rotation from the first key."""
        self._keys = list(keys)
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._keys)

    def call(self, operation: Callable[[str], T]) -> T:
        """Call ``operation(key)``, rotating keys on recoverable failures.

        Non-recoverable errors propagate unchanged without trying another key.
        Raises NoCredentialsError for an empty pool and
        CredentialsExhaustedError once every key has failed recoverably.
        """
        if not self._keys:
            raise NoCredentialsError()

        total = len(self._keys)
        last_error = None
        for attempt in range(total):
            index = (self._cursor + attempt) % total
            try:
                result = operation(self._keys[index])
            except Exception as e:
                if not is_recoverable_error(e):
                    raise
                last_error = e
                logger.warning("API key at index %d failed (%s), trying next key", index, e)
                continue
            self._cursor = index
            return result

        raise CredentialsExhaustedError(total, last_error) from last_error
