"""Pytest configuration and shared fixtures."""

import pytest
import tempfile
import shutil
from pathlib import Path
from unittest.mock import Mock

from prompt_optimizer.editor import PromptEditor
from prompt_optimizer.history import VersionHistoryStore
from prompt_optimizer.storage import LocalStorage


@pytest.fixture
def temp_storage_dir():
    """Create a temporary storage directory for testing."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir) / "storage"
    shutil.rmtree(temp_dir)


@pytest.fixture
def temp_user_config_dir(monkeypatch):
    """Create a temporary user config directory for testing."""
    temp_dir = tempfile.mkdtemp()
    config_dir = Path(temp_dir) / ".prompt-optimizer"
    config_dir.mkdir(parents=True, exist_ok=True)

    # Monkeypatch the USER_CONFIG_DIR and USER_CONFIG_FILE
    from prompt_optimizer import config
    monkeypatch.setattr(config, 'USER_CONFIG_DIR', config_dir)
    monkeypatch.setattr(config, 'USER_CONFIG_FILE', config_dir / "config.yaml")

    yield config_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def storage(temp_storage_dir):
    """Empty file-backed storage."""
    return LocalStorage(temp_storage_dir)


@pytest.fixture
def store(storage):
    """Version history store over the temporary storage."""
    return VersionHistoryStore(storage)


@pytest.fixture
def models():
    """Model caller returning a fixed rewrite."""
    caller = Mock()
    caller.call.return_value = "Optimized prompt"
    return caller


@pytest.fixture
def editor(store, models):
    """Prompt editor wired to the temporary store and fake models."""
    return PromptEditor(store, models)


@pytest.fixture
def optimized_project(editor, models):
    """Project with version 1 optimized to 'C0'."""
    editor.start_project("Translate text to French")
    models.call.return_value = "C0"
    editor.optimize(1)
    models.call.reset_mock()
    models.call.return_value = "Optimized prompt"
    return editor
