"""
Service: session_sync.py
Rôle:
- Générer/charger l'identifiant de session et relire une partie existante au démarrage.
- Sérialiser la `Session` complète après chaque transition acceptée.

Règles:
- load_or_create(session_id):
    * enregistrement trouvé et valide → reprise;
    * absent → nouvelle session Setup avec un UUID v4 tout neuf;
    * illisible / corrompu / erreur de stockage → journalisé (jamais levé), nouvelle session.
- persist(session): document JSON entier via `put`; lève `StoreIOError` (l'appelant décide
  d'en faire un simple avertissement). Même session inchangée ⇒ mêmes octets stockés.
- Cohérence multi-appareils: le dernier écrivain gagne (pas de fusion ni de verrou).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional
from uuid import uuid4

from app.config.settings import settings
from app.models.game import Session
from .errors import CorruptSession, StoreIOError
from .persistence import SessionBackend

logger = logging.getLogger(__name__)

_MAX_MINT_ATTEMPTS = 5


def mint_session_id() -> str:
    """UUID v4 au format texte (xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx)."""
    return str(uuid4())


@dataclass
class SessionSync:
    backend: SessionBackend
    round_cap: int = field(default_factory=lambda: settings.ROUND_CAP)
    id_factory: Callable[[], str] = mint_session_id

    # -----------------------------
    # Démarrage
    # -----------------------------
    def load_or_create(self, session_id: Optional[str] = None) -> Session:
        """Reprend `session_id` s'il existe et est sain, sinon crée une session Setup."""
        session = self.load(session_id) if session_id else None
        if session is None:
            session = self._fresh()
        self._remember_active(session.session_id)
        return session

    def resume_active(self) -> Session:
        """Démarrage à froid: reprend la dernière session active de ce stockage."""
        try:
            active = self.backend.get_active_id()
        except StoreIOError:
            logger.warning("Active session pointer unreadable", exc_info=True)
            active = None
        return self.load_or_create(active)

    def load(self, session_id: str) -> Optional[Session]:
        """Relit `session_id`; None si absent, illisible ou corrompu (journalisé)."""
        try:
            raw = self.backend.get(session_id)
        except StoreIOError:
            logger.warning("Session load failed", exc_info=True,
                           extra={"session_id": session_id})
            return None
        if raw is None:
            logger.info("Session %s not found", session_id)
            return None
        try:
            session = Session.from_json(raw, session_id=session_id)
        except CorruptSession as exc:
            logger.warning("Corrupt session ignored: %s", exc, extra={"session_id": session_id})
            return None
        logger.info("Session resumed", extra={"session_id": session_id,
                                              "game_screen": session.game_screen.value})
        return session

    def _fresh(self) -> Session:
        sid = self.id_factory()
        for _ in range(_MAX_MINT_ATTEMPTS):
            try:
                taken = self.backend.get(sid) is not None
            except StoreIOError:
                break
            if not taken:
                break
            sid = self.id_factory()
        session = Session(session_id=sid, round_cap=self.round_cap)
        logger.info("New session created", extra={"session_id": sid})
        return session

    def _remember_active(self, session_id: str) -> None:
        try:
            self.backend.set_active_id(session_id)
        except StoreIOError:
            logger.warning("Active session pointer not saved", exc_info=True,
                           extra={"session_id": session_id})

    # -----------------------------
    # Écriture
    # -----------------------------
    def persist(self, session: Session) -> None:
        """Écrit la session complète (lève `StoreIOError` en cas d'échec)."""
        self.backend.put(session.session_id, session.to_json())

    def discard(self, session_id: str, archive: bool = False) -> None:
        """
        Nouvelle partie: l'ancien enregistrement est supprimé, ou conservé si `archive`.
        Best effort: un échec est journalisé et ne bloque pas la nouvelle partie.
        """
        if archive:
            logger.info("Session archived", extra={"session_id": session_id})
            return
        try:
            self.backend.delete(session_id)
        except StoreIOError:
            logger.warning("Old session not deleted", exc_info=True, extra={"session_id": session_id})
