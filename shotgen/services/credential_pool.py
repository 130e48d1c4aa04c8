"""
Credential Pool - Ordered API keys with an atomically advanced rotation cursor
"""

import asyncio
from typing import List, Sequence, Tuple

from shotgen.services.observability import logger


class NoCredentialsError(ValueError):
    """Raised when a pool is built without any usable key"""

    pass


class CredentialPool:
    """
    Ordered credential set shared by every in-flight generation

    The cursor only moves through rotate_from(), which is a compare-and-swap:
    concurrent callers that saw the same failing key advance it once.
    """

    def __init__(self, keys: Sequence[str]):
        self._keys: List[str] = [key.strip() for key in keys if key and key.strip()]
        if not self._keys:
            raise NoCredentialsError("At least one API key is required")
        self._cursor = 0
        self._lock = asyncio.Lock()

    @property
    def size(self) -> int:
        return len(self._keys)

    async def snapshot(self) -> Tuple[int, str]:
        """
        Current credential

        Returns:
            (cursor index, key)
        """
        async with self._lock:
            return self._cursor, self._keys[self._cursor]

    async def rotate_from(self, index: int) -> int:
        """
        Advance past the credential at index if it is still current

        Args:
            index: Cursor index the caller observed when its call failed

        Returns:
            Cursor index after the (possible) rotation
        """
        async with self._lock:
            if self._cursor == index:
                self._cursor = (self._cursor + 1) % len(self._keys)
                logger.debug("credential_cursor_advanced", cursor=self._cursor, size=len(self._keys))
            return self._cursor
