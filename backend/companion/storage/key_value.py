"""
Local key-value storage.

Durable on this machine, not shared across devices. Each key is one UTF-8
file under the base directory.
"""

import logging
import re
from pathlib import Path
from typing import Optional

import aiofiles

from ..core.exceptions import LocalStoreError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore:
    """String values addressed by simple keys."""

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize the store with a base directory.

        Args:
            base_dir: Directory holding one file per key
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Map a key to its file inside the base directory."""
        if not _KEY_PATTERN.match(key) or key.startswith("."):
            raise ValueError(f"Invalid key: {key}")

        full_path = (self.base_dir / f"{key}.json").resolve()
        if full_path.parent != self.base_dir:
            raise ValueError(f"Invalid key: {key} - path traversal detected")
        return full_path

    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored text, or None if the key is unset or unreadable."""
        full_path = self._get_full_path(key)
        if not full_path.exists():
            return None
        try:
            async with aiofiles.open(full_path, 'r', encoding='utf-8') as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading key {key}: {e}")
            return None

    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        full_path = self._get_full_path(key)
        tmp_path = full_path.with_suffix(".tmp")
        try:
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(value)
            tmp_path.replace(full_path)
        except OSError as e:
            logger.error(f"Error writing key {key}: {e}")
            raise LocalStoreError(f"Could not write {key}: {e}") from e

    async def remove_item(self, key: str) -> None:
        full_path = self._get_full_path(key)
        try:
            full_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Error removing key {key}: {e}")
            raise LocalStoreError(f"Could not remove {key}: {e}") from e
