"""Fixtures partagées: données isolées dans un dossier temporaire, tirages scriptés."""
import os
import tempfile

# Avant tout import de `app`: les settings sont lus à l'import.
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="agentx-tests-"))
os.environ.setdefault("STORE_BACKEND", "disk")
os.environ.setdefault("SERVER_PERSISTENCE", "true")

import pytest

from app.services.persistence import DiskBackend, LocalStorage, LocalStorageBackend
from app.services.session_sync import SessionSync

WORD_PAIRS = [("Coffee", "Tea"), ("Cat", "Dog"), ("Sun", "Moon")]


class ScriptedRandom:
    """Source aléatoire rejouant une suite fixée de valeurs pour `randrange`."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = []

    def randrange(self, n):
        self.calls.append(n)
        value = self.values.pop(0)
        assert 0 <= value < n, f"valeur scriptée {value} hors de [0, {n})"
        return value


@pytest.fixture
def word_pairs():
    return list(WORD_PAIRS)


@pytest.fixture
def scripted():
    return ScriptedRandom


@pytest.fixture(params=["local", "disk"])
def backend(request, tmp_path):
    """Les deux backends, pour une même batterie de tests de conformité."""
    if request.param == "local":
        return LocalStorageBackend(LocalStorage())
    return DiskBackend(tmp_path / "saves")


@pytest.fixture
def disk_backend(tmp_path):
    return DiskBackend(tmp_path / "saves")


@pytest.fixture
def sync(disk_backend):
    return SessionSync(backend=disk_backend, round_cap=5)
