"""
Service: disk_saves.py
Rôle:
- Fonctions serveur exposées à la couche présentation quand la persistance serveur est
  activée (`settings.SERVER_PERSISTENCE`): sauvegarder, relire, lister, supprimer une
  partie sur le disque du serveur pour la reprendre depuis un autre appareil.

Stockage:
- `<SAVE_DIR>/<session_id>.json` (un document `Session` complet par fichier).

Erreurs:
- StoreIOError pour tout échec disque; CorruptSession si un fichier relu est incohérent.
"""
from typing import List, Optional

from app.config.settings import settings
from app.models.game import Session
from .persistence import DiskBackend

DISK = DiskBackend(settings.save_dir)


def _store(store: Optional[DiskBackend]) -> DiskBackend:
    return store or DISK


def save_game_to_disk(session: Session, store: Optional[DiskBackend] = None) -> None:
    """Écrit la session (invariants vérifiés avant écriture)."""
    session.validate_invariants()
    _store(store).put(session.session_id, session.to_json())


def load_game_from_disk(session_id: str, store: Optional[DiskBackend] = None) -> Optional[Session]:
    """Relit une session; None si aucun fichier."""
    raw = _store(store).get(session_id)
    if raw is None:
        return None
    return Session.from_json(raw, session_id=session_id)


def list_saved_games(store: Optional[DiskBackend] = None) -> List[str]:
    return _store(store).list()


def delete_saved_game(session_id: str, store: Optional[DiskBackend] = None) -> None:
    _store(store).delete(session_id)
