"""
Prompt version history.

A project is an ordered list of PromptVersion records where the version at
index i is numbered i + 1. The list is persisted as a single JSON document
and always rewritten in full.
"""

import hashlib
import json
import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import StaleHistoryError, VersionOutOfRangeError
from .storage import LocalStorage


logger = logging.getLogger(__name__)

LAST_OPTIMIZED_KEY = "optimizedPrompt"
HISTORY_KEY = "optimizedPromptHistory"


class PromptVersion(BaseModel):
    """One snapshot of optimized prompt text and the raw prompt it came from."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    content: str = Field(default="", description="Optimized prompt text (empty until optimized)")
    original_prompt: str = Field(default="", alias="originalPrompt", description="Raw prompt the user supplied")
    version: int = Field(default=1, ge=1, description="1-based position in the history")

    def to_dict(self) -> Dict[str, object]:
        """Convert to the persisted camelCase layout."""
        return self.model_dump(by_alias=True)

    @property
    def is_placeholder(self) -> bool:
        """True for the empty first version written before optimization."""
        return not self.content


class TestResult(BaseModel):
    """Output of the last ad-hoc test run. Never persisted."""

    __test__ = False

    input: str
    output: str
    model: str


_history_adapter = TypeAdapter(List[PromptVersion])


# ============================================================================
# History operations
# ============================================================================


def next_version_number(history: List[PromptVersion]) -> int:
    """Number assigned to the next appended version."""
    return len(history) + 1


def append_version(history: List[PromptVersion], content: str, source: PromptVersion) -> List[PromptVersion]:
    """Return a new history with content appended, inheriting source's original prompt."""
    new_version = PromptVersion(
        content=content,
        original_prompt=source.original_prompt,
        version=next_version_number(history),
    )
    return [*history, new_version]


def replace_content(history: List[PromptVersion], version: int, content: str) -> List[PromptVersion]:
    """Return a new history where only the given version's content changed."""
    index = version_index(history, version)
    updated = list(history)
    updated[index] = history[index].model_copy(update={"content": content})
    return updated


def version_index(history: List[PromptVersion], version: int) -> int:
    """Map a 1-based version number to a list index."""
    if not 1 <= version <= len(history):
        raise VersionOutOfRangeError(
            f"Version {version} does not exist (history has {len(history)} versions)"
        )
    return version - 1


def clamp_version(history: List[PromptVersion], version: Optional[int]) -> Optional[int]:
    """Clamp a pointer into [1, len(history)]; None for an empty history."""
    if not history:
        return None
    if version is None:
        return len(history)
    return max(1, min(int(version), len(history)))


def normalize_history(history: List[PromptVersion]) -> List[PromptVersion]:
    """Renumber versions by position when the stored numbering has gaps."""
    if all(item.version == i + 1 for i, item in enumerate(history)):
        return history

    logger.warning("Stored history numbering is not dense, renumbering %d versions", len(history))
    return [item.model_copy(update={"version": i + 1}) for i, item in enumerate(history)]


# ============================================================================
# Persistence
# ============================================================================


def _revision(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


_UNSET = object()


class VersionHistoryStore:
    """
    Single-writer store for the project's version history.

    Key A holds the last optimized version, Key B the full history. Writers
    either pass the revision they read to save() or go through update(),
    which performs the read-modify-write under a lock shared by every store
    opened on the same storage directory.
    """

    _locks: Dict[str, threading.RLock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, storage: LocalStorage):
        self.storage = storage
        key = str(storage.root.resolve())
        with self._locks_guard:
            self._lock = self._locks.setdefault(key, threading.RLock())

    # ------------------------------------------------------------------
    # Key B: full history
    # ------------------------------------------------------------------
    def load(self) -> List[PromptVersion]:
        """Load the history; corrupt or missing data yields an empty list."""
        history, _ = self.load_with_revision()
        return history

    def load_with_revision(self) -> Tuple[List[PromptVersion], Optional[str]]:
        """Load the history together with the revision stamp of the stored blob."""
        raw = self.storage.get_item(HISTORY_KEY)
        if raw is None:
            last = self.load_last_optimized()
            return ([last.model_copy(update={"version": 1})] if last else []), None

        return self._parse_history(raw), _revision(raw)

    def _parse_history(self, raw: str) -> List[PromptVersion]:
        try:
            data = json.loads(raw)
            history = _history_adapter.validate_python(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring corrupt %s: %s", HISTORY_KEY, e)
            return []
        return normalize_history(history)

    def save(self, history: List[PromptVersion], expected_revision=_UNSET) -> str:
        """
        Overwrite the stored history.

        Args:
            history: Complete version list to persist
            expected_revision: Revision returned by load_with_revision(); when
                given, the write only happens if the stored blob is unchanged

        Returns:
            Revision stamp of the newly written blob

        Raises:
            StaleHistoryError: If another writer changed the history
        """
        raw = json.dumps([item.to_dict() for item in history], ensure_ascii=False)

        with self._lock:
            if expected_revision is not _UNSET:
                current = _revision(self.storage.get_item(HISTORY_KEY))
                if current != expected_revision:
                    raise StaleHistoryError("Version history was modified by another writer")
            self.storage.set_item(HISTORY_KEY, raw)

        logger.debug("Saved history with %d versions", len(history))
        return _revision(raw)

    def update(
        self,
        mutate: Callable[[List[PromptVersion]], Optional[List[PromptVersion]]],
    ) -> List[PromptVersion]:
        """
        Atomically read, transform and write the history.

        mutate receives the current history and returns the new one, or None
        to leave storage untouched. Exceptions from mutate propagate and
        nothing is written.
        """
        with self._lock:
            history, revision = self.load_with_revision()
            updated = mutate(list(history))
            if updated is None:
                return history
            self.save(updated, expected_revision=revision)
            return updated

    def clear(self) -> None:
        """Remove both the history and the last optimized version."""
        with self._lock:
            self.storage.remove_item(HISTORY_KEY)
            self.storage.remove_item(LAST_OPTIMIZED_KEY)
        logger.info("Cleared version history")

    # ------------------------------------------------------------------
    # Key A: last optimized version
    # ------------------------------------------------------------------
    def load_last_optimized(self) -> Optional[PromptVersion]:
        """Load the last optimized version; corrupt data yields None."""
        raw = self.storage.get_item(LAST_OPTIMIZED_KEY)
        if raw is None:
            return None

        try:
            return PromptVersion.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring corrupt %s: %s", LAST_OPTIMIZED_KEY, e)
            return None

    def save_last_optimized(self, version: PromptVersion) -> None:
        """Overwrite the last optimized version."""
        with self._lock:
            self.storage.set_item(LAST_OPTIMIZED_KEY, json.dumps(version.to_dict(), ensure_ascii=False))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(storage={self.storage!r})"
