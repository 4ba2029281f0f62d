"""
File-backed key/value storage.

Each key is stored as its own file inside the storage directory, holding the
raw string value exactly as written. Writes go to a temporary file first and
are moved into place, so readers never observe a half-written value.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union


logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r'^[A-Za-z0-9_.-]+$')


class LocalStorage:
    """
    String key/value store persisted under a directory.

    Mirrors the browser localStorage surface: get_item, set_item,
    remove_item and clear.
    """

    def __init__(self, root: Union[str, Path]):
        """
        Initialize the storage.

        Args:
            root: Directory holding one file per key (created on first write)
        """
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        if not key or not _KEY_PATTERN.match(key) or key.startswith('.'):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        path = self._path_for(key)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        path = self._path_for(key)
        self.root.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(value)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug("Stored %s (%d chars)", key, len(value))

    def remove_item(self, key: str) -> None:
        """Delete key; missing keys are ignored."""
        path = self._path_for(key)
        try:
            path.unlink()
            logger.debug("Removed %s", key)
        except FileNotFoundError:
            pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(root={self.root})"
