"""Unit tests for history.py."""

import json
import threading

import pytest
from prompt_optimizer import history as hist
from prompt_optimizer.errors import StaleHistoryError, VersionOutOfRangeError
from prompt_optimizer.history import PromptVersion, VersionHistoryStore


def make_history(*contents, original="P"):
    return [
        PromptVersion(content=c, original_prompt=original, version=i + 1)
        for i, c in enumerate(contents)
    ]


class TestPromptVersion:
    """Tests for the version record."""

    def test_serializes_camel_case(self):
        """Test the persisted layout uses the camelCase keys."""
        version = PromptVersion(content="C", original_prompt="P", version=2)

        assert version.to_dict() == {"content": "C", "originalPrompt": "P", "version": 2}

    def test_parses_camel_case(self):
        """Test records are read from camelCase keys."""
        version = PromptVersion.model_validate({"content": "C", "originalPrompt": "P", "version": 3})

        assert version.original_prompt == "P"
        assert version.version == 3

    def test_missing_content_defaults_empty(self):
        """Test a landing record without content is an empty placeholder."""
        version = PromptVersion.model_validate({"originalPrompt": "P"})

        assert version.content == ""
        assert version.version == 1
        assert version.is_placeholder

    def test_version_must_be_positive(self):
        """Test version 0 is rejected."""
        with pytest.raises(ValueError):
            PromptVersion(content="C", original_prompt="P", version=0)


class TestHistoryOperations:
    """Tests for the pure history helpers."""

    def test_append_version(self):
        """Test appending numbers densely and propagates the original prompt."""
        history = make_history("C0", "C1", original="raw")

        updated = hist.append_version(history, "C2", history[0])

        assert len(updated) == 3
        assert updated[2].version == 3
        assert updated[2].original_prompt == "raw"
        assert updated[:2] == history

    def test_append_does_not_mutate(self):
        """Test the input list is left untouched."""
        history = make_history("C0")
        hist.append_version(history, "C1", history[0])

        assert len(history) == 1

    def test_replace_content(self):
        """Test replacing only changes the targeted version's content."""
        history = make_history("C0", "C1", "C2")

        updated = hist.replace_content(history, 2, "edited")

        assert [v.content for v in updated] == ["C0", "edited", "C2"]
        assert updated[1].version == 2
        assert updated[1].original_prompt == "P"
        assert history[1].content == "C1"

    def test_replace_out_of_range(self):
        """Test replacing a missing version raises."""
        with pytest.raises(VersionOutOfRangeError):
            hist.replace_content(make_history("C0"), 2, "x")

    @pytest.mark.parametrize("pointer,expected", [(None, 3), (0, 1), (2, 2), (9, 3), (-4, 1)])
    def test_clamp_version(self, pointer, expected):
        """Test pointers are clamped into range."""
        assert hist.clamp_version(make_history("a", "b", "c"), pointer) == expected

    def test_clamp_empty_history(self):
        """Test an empty history has no current version."""
        assert hist.clamp_version([], 1) is None

    def test_normalize_renumbers_gaps(self):
        """Test stored numbering with gaps is renumbered by position."""
        history = [
            PromptVersion(content="a", original_prompt="P", version=1),
            PromptVersion(content="b", original_prompt="P", version=5),
        ]

        normalized = hist.normalize_history(history)

        assert [v.version for v in normalized] == [1, 2]


class TestVersionHistoryStore:
    """Tests for history persistence."""

    def test_load_empty(self, store):
        """Test an empty storage loads as an empty history."""
        assert store.load() == []

    def test_save_and_load(self, store):
        """Test saving and loading a history."""
        history = make_history("C0", "C1")
        store.save(history)

        assert store.load() == history

    def test_saved_blob_layout(self, store, storage):
        """Test the stored blob is a JSON array of camelCase records."""
        store.save(make_history("C0"))

        data = json.loads(storage.get_item(hist.HISTORY_KEY))
        assert data == [{"content": "C0", "originalPrompt": "P", "version": 1}]

    def test_corrupt_json_loads_empty(self, store, storage, caplog):
        """Test malformed JSON is treated as no saved state and logged."""
        storage.set_item(hist.HISTORY_KEY, "{not json")

        assert store.load() == []
        assert "corrupt" in caplog.text.lower()

    def test_wrong_shape_loads_empty(self, store, storage):
        """Test JSON of the wrong shape is treated as no saved state."""
        storage.set_item(hist.HISTORY_KEY, json.dumps({"content": "C"}))

        assert store.load() == []

    def test_falls_back_to_last_optimized(self, store):
        """Test a missing history boots from the last optimized version."""
        store.save_last_optimized(PromptVersion(content="C", original_prompt="P", version=4))

        loaded = store.load()

        assert len(loaded) == 1
        assert loaded[0].content == "C"
        assert loaded[0].version == 1

    def test_corrupt_last_optimized(self, store, storage):
        """Test corrupt Key A is ignored."""
        storage.set_item(hist.LAST_OPTIMIZED_KEY, "[1, 2")

        assert store.load_last_optimized() is None
        assert store.load() == []

    def test_clear_removes_both_keys(self, store, storage):
        """Test clearing removes the history and the last optimized version."""
        store.save(make_history("C0"))
        store.save_last_optimized(make_history("C0")[0])

        store.clear()

        assert storage.get_item(hist.HISTORY_KEY) is None
        assert storage.get_item(hist.LAST_OPTIMIZED_KEY) is None
        assert store.load() == []

    def test_save_with_matching_revision(self, store):
        """Test compare-and-swap succeeds when nothing changed."""
        store.save(make_history("C0"))
        history, revision = store.load_with_revision()

        store.save(hist.append_version(history, "C1", history[0]), expected_revision=revision)

        assert len(store.load()) == 2

    def test_save_with_stale_revision(self, store):
        """Test compare-and-swap rejects a write based on an old read."""
        store.save(make_history("C0"))
        history, revision = store.load_with_revision()

        # Another writer gets in first
        store.save(make_history("C0", "other"))

        with pytest.raises(StaleHistoryError):
            store.save(hist.append_version(history, "mine", history[0]), expected_revision=revision)

        assert [v.content for v in store.load()] == ["C0", "other"]

    def test_revision_none_when_absent(self, store):
        """Test the revision of a missing history is None."""
        _, revision = store.load_with_revision()
        assert revision is None

    def test_update_returns_new_history(self, store):
        """Test update writes the transformed history."""
        store.save(make_history("C0"))

        updated = store.update(lambda h: hist.append_version(h, "C1", h[0]))

        assert len(updated) == 2
        assert store.load() == updated

    def test_update_none_writes_nothing(self, store, storage):
        """Test returning None from the transform leaves storage alone."""
        store.save(make_history("C0"))
        before = storage.get_item(hist.HISTORY_KEY)

        result = store.update(lambda h: None)

        assert result == make_history("C0")
        assert storage.get_item(hist.HISTORY_KEY) == before

    def test_update_exception_writes_nothing(self, store):
        """Test a failing transform commits nothing."""
        store.save(make_history("C0"))

        def boom(history):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.update(boom)

        assert store.load() == make_history("C0")

    def test_concurrent_updates_do_not_lose_appends(self, store, storage):
        """Test parallel appends through separate stores all survive."""
        store.save(make_history("C0"))
        other = VersionHistoryStore(storage)

        def append(target, n):
            for i in range(n):
                target.update(lambda h: hist.append_version(h, f"x{i}", h[0]))

        threads = [
            threading.Thread(target=append, args=(store, 10)),
            threading.Thread(target=append, args=(other, 10)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        loaded = store.load()
        assert len(loaded) == 21
        assert [v.version for v in loaded] == list(range(1, 22))
