import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture
def fresh_config(monkeypatch):
    """
    Reload config after the test sets env vars, and reload it again afterwards
    so later tests see the defaults.
    """
    import letterboxd_client.config as config

    def reload():
        return importlib.reload(config)

    yield reload
    monkeypatch.undo()
    importlib.reload(config)


@pytest.fixture
def memory_cache():
    from letterboxd_client.cache import MemoryCache

    return MemoryCache()
