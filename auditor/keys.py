"""
Round-robin pool of interchangeable API credentials.

Shared by every in-flight request of one analysis run. The cursor, usage
counters and exhausted set are only touched under the lock.
"""

import logging
import threading
from typing import Dict, Iterable, List, Set

from .errors import AllKeysExhausted, ConfigurationError, is_quota_error, is_rate_limit_error

logger = logging.getLogger(__name__)


def mask_key(key: str) -> str:
    """Printable prefix of a credential."""
    return f"{key[:10]}..."


class KeyPool:
    """
    Round-robin credential selector with quota tracking.

    Args:
        keys: credential strings; blanks are ignored, duplicates collapsed
    """

    def __init__(self, keys: Iterable[str]):
        cleaned: List[str] = []
        for key in keys or []:
            key = (key or "").strip()
            if key and key not in cleaned:
                cleaned.append(key)
        if not cleaned:
            raise ConfigurationError("No API keys configured (set AUDITOR_API_KEYS)")

        self._keys = cleaned
        self._cursor = 0
        self._usage: Dict[str, int] = {key: 0 for key in cleaned}
        self._exhausted: Set[str] = set()
        self._lock = threading.Lock()
        logger.info(f"[KEYS] Pool initialized with {len(cleaned)} key(s)")

    @classmethod
    def from_string(cls, raw: str) -> "KeyPool":
        """Build from a comma separated list, as stored in env files."""
        return cls((raw or "").split(","))

    @property
    def key_count(self) -> int:
        return len(self._keys)

    @property
    def available_count(self) -> int:
        with self._lock:
            return len(self._keys) - len(self._exhausted)

    def usage(self, key: str) -> int:
        with self._lock:
            return self._usage.get(key, 0)

    def is_exhausted(self, key: str) -> bool:
        with self._lock:
            return key in self._exhausted

    def get_next_key(self) -> str:
        """
        Next non-exhausted key in rotation.

        Raises:
            AllKeysExhausted: every key is marked exhausted
        """
        with self._lock:
            for _ in range(len(self._keys)):
                key = self._keys[self._cursor]
                self._cursor = (self._cursor + 1) % len(self._keys)
                if key in self._exhausted:
                    continue
                self._usage[key] += 1
                logger.debug(f"[KEYS] Using {mask_key(key)} (uses: {self._usage[key]})")
                return key
        raise AllKeysExhausted()

    def mark_exhausted(self, key: str) -> None:
        with self._lock:
            if key not in self._usage or key in self._exhausted:
                return
            self._exhausted.add(key)
            remaining = len(self._keys) - len(self._exhausted)
        logger.warning(f"[KEYS] {mask_key(key)} exhausted, {remaining} key(s) left")

    def handle_upstream_error(self, key: str, error: BaseException) -> bool:
        """
        Classify a failed call made with `key`.

        Returns:
            True when retrying with another credential makes sense
        """
        if is_quota_error(error):
            self.mark_exhausted(key)
            return True
        if is_rate_limit_error(error):
            logger.warning(f"[KEYS] Rate limited on {mask_key(key)}")
            return True
        return False

    def snapshot(self) -> List[dict]:
        """Per-key state, credentials masked."""
        with self._lock:
            return [
                {"key": mask_key(key), "usage": self._usage[key], "exhausted": key in self._exhausted}
                for key in self._keys
            ]
