"""
Service: errors.py
Taxonomie des erreurs du moteur de partie.

- Erreurs d'entrée (bloquantes, état inchangé) :
  InsufficientPlayers, InvalidPlayers, EmptyCatalog, InvalidTransition.
- Erreurs de stockage (non bloquantes pour le moteur) : StoreIOError.
- Enregistrement relu mais incohérent : CorruptSession.
"""
from __future__ import annotations

from typing import Optional


class GameError(Exception):
    """Racine de toutes les erreurs du moteur."""


class InsufficientPlayers(GameError):
    """Moins de joueurs que le minimum requis pour distribuer les cartes."""

    def __init__(self, count: int, minimum: int = 3) -> None:
        super().__init__(f"Au moins {minimum} joueurs requis (reçu: {count})")
        self.count = count
        self.minimum = minimum


class InvalidPlayers(GameError):
    """Liste de noms refusée (vide, doublon, trop de joueurs)."""


class EmptyCatalog(GameError):
    """Aucune paire de mots configurée."""

    def __init__(self) -> None:
        super().__init__("Aucune paire de mots disponible")


class InvalidTransition(GameError):
    """Événement refusé par la machine à états (la session n'est pas modifiée)."""

    def __init__(self, event: str, screen: str, reason: Optional[str] = None) -> None:
        message = f"Événement '{event}' refusé depuis l'écran {screen}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.event = event
        self.screen = screen
        self.reason = reason


class StoreIOError(GameError, OSError):
    """Échec de lecture/écriture/listing/suppression dans un backend de stockage."""


class CorruptSession(GameError):
    """Enregistrement illisible ou qui viole les invariants de session."""

    def __init__(self, session_id: Optional[str], reason: str) -> None:
        super().__init__(f"Session {session_id or '?'} corrompue: {reason}")
        self.session_id = session_id
        self.reason = reason


class InvalidSessionId(StoreIOError):
    """Identifiant inutilisable comme clé de stockage ou nom de fichier."""
