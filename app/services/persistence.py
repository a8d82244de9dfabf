"""
Service: persistence.py
Rôle:
- Interface unique de stockage clé/valeur des sessions (`SessionBackend`) et ses deux
  implémentations interchangeables, choisies à l'exécution par configuration.

Backends:
- LocalStorageBackend: portée "un appareil", sémantique d'un localStorage de navigateur.
    clés: `agent_x_game_<session_id>` (document JSON) et `agent_x_session_id` (session active).
    Erreurs possibles: quota dépassé, stockage désactivé, échec d'écriture du fichier miroir.
- DiskBackend: un fichier `<session_id>.json` par partie dans `SAVE_DIR`, ce qui permet
  la reprise depuis un second appareil. Erreurs: permissions, disque plein, etc.
    Le pointeur de session active vit dans `active_session_id` (ignoré par `list()`).

Contrat commun:
- put(session_id, blob) / get(session_id) → blob | None / list() → [ids] / delete(session_id)
- get_active_id() / set_active_id(session_id)
- Toute défaillance est remontée une seule fois sous forme de `StoreIOError` (pas de retry).

Le moteur ne teste jamais le type de backend actif.
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Union

from app.config.settings import Settings, settings as default_settings
from .errors import InvalidSessionId, StoreIOError
from .io_utils import JSONDecodeError, read_json, write_bytes, write_json

logger = logging.getLogger(__name__)

Blob = Union[bytes, str]

GAME_KEY_PREFIX = "agent_x_game_"
ACTIVE_SESSION_KEY = "agent_x_session_id"
ACTIVE_SESSION_FILENAME = "active_session_id"

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def check_session_id(session_id: str) -> str:
    """Refuse les identifiants inutilisables comme clé ou nom de fichier."""
    sid = (session_id or "").strip()
    if not _SESSION_ID_RE.match(sid):
        raise InvalidSessionId(f"Identifiant de session invalide: {session_id!r}")
    return sid


def _as_bytes(blob: Blob) -> bytes:
    return blob.encode("utf-8") if isinstance(blob, str) else bytes(blob)


class SessionBackend(ABC):
    """Contrat commun des backends de stockage."""

    name: str = "abstract"

    @abstractmethod
    def put(self, session_id: str, blob: Blob) -> None:
        ...

    @abstractmethod
    def get(self, session_id: str) -> Optional[bytes]:
        ...

    @abstractmethod
    def list(self) -> List[str]:
        ...

    @abstractmethod
    def delete(self, session_id: str) -> None:
        ...

    @abstractmethod
    def get_active_id(self) -> Optional[str]:
        ...

    @abstractmethod
    def set_active_id(self, session_id: Optional[str]) -> None:
        ...


# ---------------------------------------------------------------------------
# Stockage "navigateur"
# ---------------------------------------------------------------------------
class LocalStorage:
    """
    Équivalent d'un `window.localStorage`: dictionnaire texte → texte, borné par un quota.

    - `quota`: taille max (octets UTF-8 des clés + valeurs), 0 = illimité.
    - `enabled=False` simule un stockage désactivé par le navigateur.
    - `path`: si fourni, le contenu est recopié dans ce fichier JSON à chaque écriture
      pour survivre à un redémarrage de l'appareil.
    """

    def __init__(self, quota: int = 0, path: Optional[Path] = None, enabled: bool = True):
        self._lock = RLock()
        self.quota = quota
        self.path = Path(path) if path else None
        self.enabled = enabled
        self._items: Dict[str, str] = {}
        if self.path:
            self._load_mirror()

    def _load_mirror(self) -> None:
        try:
            data = read_json(self.path)
        except (OSError, JSONDecodeError):
            logger.warning("Local storage mirror unreadable, starting empty", exc_info=True,
                           extra={"storage_path": str(self.path)})
            return
        if isinstance(data, dict):
            self._items = {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _check_enabled(self) -> None:
        if not self.enabled:
            raise StoreIOError("Stockage local désactivé")

    def _size(self, items: Dict[str, str]) -> int:
        return sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in items.items())

    def _flush(self) -> None:
        if not self.path:
            return
        try:
            write_json(self.path, self._items)
        except OSError as exc:
            raise StoreIOError(f"Écriture du stockage local impossible: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            self._check_enabled()
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._check_enabled()
            candidate = dict(self._items)
            candidate[key] = value
            if self.quota and self._size(candidate) > self.quota:
                raise StoreIOError(f"Quota du stockage local dépassé ({self.quota} octets)")
            previous = self._items
            self._items = candidate
            try:
                self._flush()
            except StoreIOError:
                self._items = previous
                raise

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._check_enabled()
            if key in self._items:
                previous = dict(self._items)
                del self._items[key]
                try:
                    self._flush()
                except StoreIOError:
                    self._items = previous
                    raise

    def keys(self) -> List[str]:
        with self._lock:
            self._check_enabled()
            return list(self._items.keys())


class LocalStorageBackend(SessionBackend):
    name = "local"

    def __init__(self, storage: Optional[LocalStorage] = None):
        self.storage = storage or LocalStorage()

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{GAME_KEY_PREFIX}{check_session_id(session_id)}"

    def put(self, session_id: str, blob: Blob) -> None:
        self.storage.set_item(self._key(session_id), _as_bytes(blob).decode("utf-8"))

    def get(self, session_id: str) -> Optional[bytes]:
        value = self.storage.get_item(self._key(session_id))
        return value.encode("utf-8") if value is not None else None

    def list(self) -> List[str]:
        return sorted(k[len(GAME_KEY_PREFIX):] for k in self.storage.keys() if k.startswith(GAME_KEY_PREFIX))

    def delete(self, session_id: str) -> None:
        self.storage.remove_item(self._key(session_id))

    def get_active_id(self) -> Optional[str]:
        return self.storage.get_item(ACTIVE_SESSION_KEY) or None

    def set_active_id(self, session_id: Optional[str]) -> None:
        if session_id is None:
            self.storage.remove_item(ACTIVE_SESSION_KEY)
        else:
            self.storage.set_item(ACTIVE_SESSION_KEY, check_session_id(session_id))


# ---------------------------------------------------------------------------
# Stockage disque (serveur)
# ---------------------------------------------------------------------------
class DiskBackend(SessionBackend):
    name = "disk"

    def __init__(self, save_dir: Union[str, Path]):
        self.save_dir = Path(save_dir)

    def _path(self, session_id: str) -> Path:
        return self.save_dir / f"{check_session_id(session_id)}.json"

    def _fail(self, action: str, exc: OSError, session_id: Optional[str] = None) -> StoreIOError:
        logger.error(
            "Disk store %s failed",
            action,
            exc_info=True,
            extra={"session_id": session_id, "save_dir": str(self.save_dir)},
        )
        return StoreIOError(f"{action} impossible dans {self.save_dir}: {exc}")

    def put(self, session_id: str, blob: Blob) -> None:
        path = self._path(session_id)
        try:
            write_bytes(path, _as_bytes(blob))
        except OSError as exc:
            raise self._fail("write", exc, session_id) from exc

    def get(self, session_id: str) -> Optional[bytes]:
        path = self._path(session_id)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise self._fail("read", exc, session_id) from exc

    def list(self) -> List[str]:
        if not self.save_dir.exists():
            return []
        try:
            return sorted(p.stem for p in self.save_dir.glob("*.json") if p.is_file())
        except OSError as exc:
            raise self._fail("list", exc) from exc

    def delete(self, session_id: str) -> None:
        path = self._path(session_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise self._fail("delete", exc, session_id) from exc

    def get_active_id(self) -> Optional[str]:
        path = self.save_dir / ACTIVE_SESSION_FILENAME
        try:
            value = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise self._fail("read", exc) from exc
        return value or None

    def set_active_id(self, session_id: Optional[str]) -> None:
        path = self.save_dir / ACTIVE_SESSION_FILENAME
        try:
            if session_id is None:
                path.unlink(missing_ok=True)
            else:
                write_bytes(path, check_session_id(session_id).encode("utf-8"))
        except OSError as exc:
            raise self._fail("write", exc, session_id) from exc


def build_backend(cfg: Optional[Settings] = None) -> SessionBackend:
    """Instancie le backend désigné par `STORE_BACKEND` ("local" ou "disk")."""
    cfg = cfg or default_settings
    if cfg.STORE_BACKEND == "local":
        storage = LocalStorage(quota=cfg.LOCAL_STORAGE_QUOTA, path=cfg.LOCAL_STORAGE_PATH)
        backend: SessionBackend = LocalStorageBackend(storage)
    else:
        backend = DiskBackend(cfg.save_dir)
    logger.info("Session store backend: %s", backend.name)
    return backend
