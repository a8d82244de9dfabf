"""
Session store registry
======================

Expose des helpers pour récupérer le `GameEngine` dédié à une session côté serveur.
Les moteurs sont mis en cache en mémoire et chargés à la demande via `SessionSync`
depuis le backend configuré (`settings.STORE_BACKEND`).

Un seul écrivain par session et par processus: les routes exécutent leurs transitions
sous `session_lock()`.
"""
from __future__ import annotations

from contextlib import contextmanager
from threading import RLock
from typing import Dict, Iterator, Optional

from app.models.game import GameScreen
from .game_engine import GameEngine
from .persistence import SessionBackend, build_backend, check_session_id
from .session_sync import SessionSync

_ENGINES: Dict[str, GameEngine] = {}
_LOCK = RLock()
_SYNC: Optional[SessionSync] = None


def get_sync() -> SessionSync:
    """Retourne (et initialise si besoin) le gestionnaire de synchronisation serveur."""
    global _SYNC
    with _LOCK:
        if _SYNC is None:
            _SYNC = SessionSync(backend=build_backend())
        return _SYNC


def use_backend(backend: SessionBackend) -> SessionSync:
    """Remplace le backend actif (tests, reconfiguration) et vide le cache."""
    global _SYNC
    with _LOCK:
        _SYNC = SessionSync(backend=backend)
        _ENGINES.clear()
        return _SYNC


@contextmanager
def session_lock() -> Iterator[None]:
    with _LOCK:
        yield


def _register(engine: GameEngine) -> GameEngine:
    _ENGINES[engine.session.session_id] = engine
    return engine


def create_session_engine(session_id: Optional[str] = None) -> GameEngine:
    """Reprend `session_id` si possible, sinon crée une session Setup (jamais d'erreur)."""
    with _LOCK:
        if session_id and session_id in _ENGINES:
            return _ENGINES[session_id]
        sync = get_sync()
        return _register(GameEngine(session=sync.load_or_create(session_id), sync=sync))


def get_session_engine(session_id: str) -> Optional[GameEngine]:
    """
    Retourne le moteur de la session, ou None si elle est inconnue/illisible.
    Lève `InvalidSessionId` si l'identifiant est inutilisable.
    """
    session_id = check_session_id(session_id)
    with _LOCK:
        engine = _ENGINES.get(session_id)
        if engine is None:
            sync = get_sync()
            session = sync.load(session_id)
            if session is None:
                return None
            engine = _register(GameEngine(session=session, sync=sync))
        return engine


def replace_session_engine(old_session_id: str, engine: GameEngine) -> None:
    """Après `new_game`: retire l'ancien identifiant et indexe le nouveau."""
    with _LOCK:
        _ENGINES.pop(old_session_id, None)
        _register(engine)


def release_finished_engine(engine: GameEngine, persisted: bool) -> bool:
    """
    Libère le cache d'une partie terminée (GameOver) déjà sauvegardée: elle sera
    rechargée depuis le stockage si on la consulte encore.
    """
    if engine.session.game_screen != GameScreen.GAME_OVER or not persisted:
        return False
    drop_session_engine(engine.session.session_id)
    return True


def drop_session_engine(session_id: str) -> None:
    """Retire une session du cache (sans supprimer l'enregistrement)."""
    with _LOCK:
        _ENGINES.pop(session_id, None)


def list_session_ids() -> list[str]:
    """Sessions actuellement chargées en mémoire."""
    with _LOCK:
        return list(_ENGINES.keys())
