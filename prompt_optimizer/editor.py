"""
Editor actions over the version history.

Every action reads the stored history, optionally calls a model, and commits
its change through VersionHistoryStore.update so a failed call never leaves a
partial write behind. The current-version pointer belongs to the caller
(one per UI session) and is passed in and returned explicitly.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, NamedTuple, Optional, Protocol, Set, Union

from .errors import InputRequiredError, StaleHistoryError
from .history import (
    PromptVersion,
    TestResult,
    VersionHistoryStore,
    append_version,
    clamp_version,
    replace_content,
    version_index,
)
from .instructions import ITERATE, OPTIMIZE, RewriteInstruction
from .providers.registry import ModelId


logger = logging.getLogger(__name__)


class ModelCaller(Protocol):
    """Anything that can run (system_prompt, user_input) through a model."""

    def call(self, model_id: Union[str, ModelId], system_prompt: str, user_input: str = "") -> str:
        ...


class RewriteResult(NamedTuple):
    """History after a rewrite and the version the pointer should move to."""
    history: List[PromptVersion]
    version: int


class PromptEditor:
    """Optimize, iterate, edit, test and reset a prompt project."""

    def __init__(self, store: VersionHistoryStore, models: ModelCaller, default_model: Union[str, ModelId] = ModelId.DEEPSEEK_V3):
        self.store = store
        self.models = models
        self.default_model = ModelId.parse(default_model)
        self._busy: Set[str] = set()
        self._busy_lock = threading.Lock()

    @contextmanager
    def _busy_guard(self, action: str) -> Iterator[bool]:
        """Yield False when the same action is already running."""
        with self._busy_lock:
            if action in self._busy:
                acquired = False
            else:
                self._busy.add(action)
                acquired = True
        try:
            yield acquired
        finally:
            if acquired:
                with self._busy_lock:
                    self._busy.discard(action)

    def is_busy(self, action: str) -> bool:
        """Whether an action is currently in flight."""
        with self._busy_lock:
            return action in self._busy

    # ------------------------------------------------------------------
    # Project lifecycle
    # ------------------------------------------------------------------
    def start_project(self, prompt: str) -> List[PromptVersion]:
        """
        Start a new project from a raw prompt.

        Writes version 1 with empty content; the first optimization fills it.

        Raises:
            InputRequiredError: If prompt is blank
        """
        if not prompt or not prompt.strip():
            raise InputRequiredError("Please enter a prompt")

        first = PromptVersion(content="", original_prompt=prompt, version=1)
        history = self.store.update(lambda _: [first])
        self.store.save_last_optimized(first)

        logger.info("Started project from %d-char prompt", len(prompt))
        return history

    def load(self) -> List[PromptVersion]:
        """Load the stored history."""
        return self.store.load()

    def new_project(self) -> None:
        """Discard the whole project. Irreversible."""
        self.store.clear()

    # ------------------------------------------------------------------
    # Version pointer
    # ------------------------------------------------------------------
    @staticmethod
    def current(history: List[PromptVersion], current_version: Optional[int]) -> Optional[PromptVersion]:
        """Version the pointer refers to, clamped into range."""
        clamped = clamp_version(history, current_version)
        if clamped is None:
            return None
        return history[clamped - 1]

    @staticmethod
    def select_version(history: List[PromptVersion], version: int) -> int:
        """
        Validate a version selection.

        Raises:
            VersionOutOfRangeError: If version is not in the history
        """
        version_index(history, version)
        return version

    def _require_current(self, current_version: Optional[int]) -> PromptVersion:
        source = self.current(self.load(), current_version)
        if source is None:
            raise InputRequiredError("No prompt project found. Start a new project first")
        return source

    # ------------------------------------------------------------------
    # Model-backed rewrites
    # ------------------------------------------------------------------
    def request_rewrite(
        self,
        current_version: Optional[int],
        instruction: RewriteInstruction,
        model: Union[str, ModelId, None] = None,
        **values: str,
    ) -> RewriteResult:
        """
        Ask a model to rewrite the current version and commit the result.

        The instruction is rendered with prompt set to the current content (or
        the original prompt when the version is still empty) plus values.
        The empty first version is filled in place; anything else appends a
        new version carrying the same original prompt.

        Raises:
            InputRequiredError: If there is nothing to rewrite
            UnknownModelError, MissingCredentialError, ProviderError: From the model call
            StaleHistoryError: If the project was reset during the call
        """
        model_id = ModelId.parse(model or self.default_model)
        source = self._require_current(current_version)

        prompt_text = source.content or source.original_prompt
        if not prompt_text.strip():
            raise InputRequiredError("The current version has no prompt text")

        system_prompt, user_input = instruction.render(prompt=prompt_text, **values)
        output = self.models.call(model_id, system_prompt, user_input)

        result = {}

        def commit(history: List[PromptVersion]) -> List[PromptVersion]:
            index = source.version - 1
            if (
                index >= len(history)
                or history[index].original_prompt != source.original_prompt
                or history[index].is_placeholder != source.is_placeholder
            ):
                raise StaleHistoryError("The project changed while the request was running")

            if source.is_placeholder:
                result["version"] = source.version
                return replace_content(history, source.version, output)

            updated = append_version(history, output, source)
            result["version"] = updated[-1].version
            return updated

        history = self.store.update(commit)
        return RewriteResult(history=history, version=result["version"])

    def optimize(self, current_version: Optional[int], model: Union[str, ModelId, None] = None) -> Optional[RewriteResult]:
        """
        Optimize the current version.

        Returns:
            The rewrite result, or None if an optimization is already running
        """
        with self._busy_guard("optimize") as acquired:
            if not acquired:
                logger.debug("Optimize already in progress, ignoring request")
                return None

            result = self.request_rewrite(current_version, OPTIMIZE, model)
            self.store.save_last_optimized(result.history[result.version - 1])
            logger.info("Optimized prompt into version %d", result.version)
            return result

    def iterate(
        self,
        current_version: Optional[int],
        feedback: str,
        model: Union[str, ModelId, None] = None,
    ) -> Optional[RewriteResult]:
        """
        Rewrite the current version to address free-text feedback.

        Returns:
            The rewrite result, or None if an iteration is already running

        Raises:
            InputRequiredError: If feedback is blank
        """
        if not feedback or not feedback.strip():
            raise InputRequiredError("Please describe what should be improved")

        with self._busy_guard("iterate") as acquired:
            if not acquired:
                logger.debug("Iterate already in progress, ignoring request")
                return None

            result = self.request_rewrite(current_version, ITERATE, model, feedback=feedback)
            logger.info("Iterated prompt into version %d", result.version)
            return result

    # ------------------------------------------------------------------
    # Manual edit / copy
    # ------------------------------------------------------------------
    def has_unsaved_edit(self, history: List[PromptVersion], current_version: Optional[int], buffer: Optional[str]) -> bool:
        """True when the edit buffer holds text different from the current version."""
        current = self.current(history, current_version)
        if current is None or not buffer:
            return False
        return buffer != current.content

    def save_edit(self, current_version: Optional[int], buffer: str) -> List[PromptVersion]:
        """
        Replace the current version's content with the edit buffer.

        Returns:
            The history after the save (unchanged when there was no edit)
        """
        source = self._require_current(current_version)

        def commit(history: List[PromptVersion]) -> Optional[List[PromptVersion]]:
            if not self.has_unsaved_edit(history, source.version, buffer):
                return None
            logger.info("Saving manual edit to version %d", source.version)
            return replace_content(history, source.version, buffer)

        return self.store.update(commit)

    def copy_current(self, current_version: Optional[int]) -> str:
        """Content of the current version for the clipboard."""
        return self._require_current(current_version).content

    # ------------------------------------------------------------------
    # Ad-hoc test
    # ------------------------------------------------------------------
    def run_test(
        self,
        current_version: Optional[int],
        test_input: str,
        model: Union[str, ModelId, None] = None,
    ) -> Optional[TestResult]:
        """
        Run the current version against sample input. Never touches history.

        Returns:
            The test result, or None if a test is already running

        Raises:
            InputRequiredError: If test input is blank or the prompt is empty
        """
        if not test_input or not test_input.strip():
            raise InputRequiredError("Please enter content to test with")
        model_id = ModelId.parse(model or self.default_model)

        with self._busy_guard("test") as acquired:
            if not acquired:
                logger.debug("Test already in progress, ignoring request")
                return None

            source = self._require_current(current_version)
            if not source.content:
                raise InputRequiredError("Optimize the prompt before testing it")

            output = self.models.call(model_id, source.content, test_input)
            logger.info("Tested version %d with %s", source.version, model_id.value)
            return TestResult(input=test_input, output=output, model=model_id.value)
