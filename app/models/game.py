"""
Models / game.py
Rôle:
- Définir la racine d'agrégat `Session` (une partie complète et reprenable) et l'enum
  des écrans `GameScreen`.
- Sérialisation JSON déterministe (orjson, clés triées) et relecture validée.

Champs principaux (document JSON):
- session_id: UUID v4 (clé unique de stockage, immuable).
- game_screen: "Setup" | "CardView" | "Discussion" | "Voting" | "Scoring" | "GameOver".
- players: liste ordonnée de Player.
- round_number: numéro de manche (>= 1).
- cards: une GameCard par joueur (même index).
- imposter_index: index du joueur imposteur (le même pour toutes les manches).
- eliminated: indices éliminés pendant la manche (liste triée en JSON).
- votes: {index votant: index visé} (clés en texte en JSON).

Champs de suivi:
- revealed: indices ayant déjà vu leur carte pendant la manche.
- round_cap: nombre maximal de manches.
- imposter_found: l'imposteur a-t-il été démasqué ?
- last_tally: résultat du dernier dépouillement (affiché sur l'écran Scoring).
- created_at / updated_at: horodatage (epoch, secondes).
"""
from __future__ import annotations

import time
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import BaseModel, Field, ValidationError, field_serializer

from app.models.player import GameCard, Player
from app.services.errors import CorruptSession
from app.services.io_utils import JSONDecodeError, dumps, loads

MIN_PLAYERS = 3


class GameScreen(str, Enum):
    SETUP = "Setup"
    CARD_VIEW = "CardView"
    DISCUSSION = "Discussion"
    VOTING = "Voting"
    SCORING = "Scoring"
    GAME_OVER = "GameOver"


class TallyResult(BaseModel):
    """Dépouillement d'un vote: histogramme + éventuel éliminé."""
    counts: Dict[int, int] = Field(default_factory=dict)  # index visé -> nb de voix
    eliminated_index: Optional[int] = None  # None si égalité / aucun vote
    tie: bool = False
    forced: bool = False  # clôture sans que tout le monde ait voté

    @field_serializer("counts")
    def _ser_counts(self, counts: Dict[int, int]) -> Dict[str, int]:
        return {str(k): counts[k] for k in sorted(counts)}


class Session(BaseModel):
    session_id: str
    game_screen: GameScreen = GameScreen.SETUP
    players: List[Player] = Field(default_factory=list)
    round_number: int = Field(1, ge=1)
    cards: List[GameCard] = Field(default_factory=list)
    imposter_index: int = Field(0, ge=0)
    eliminated: Set[int] = Field(default_factory=set)
    votes: Dict[int, int] = Field(default_factory=dict)

    revealed: Set[int] = Field(default_factory=set)
    round_cap: int = Field(5, ge=1)
    imposter_found: bool = False
    last_tally: Optional[TallyResult] = None
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)

    @field_serializer("eliminated", "revealed")
    def _ser_index_set(self, value: Set[int]) -> List[int]:
        return sorted(value)

    @field_serializer("votes")
    def _ser_votes(self, votes: Dict[int, int]) -> Dict[str, int]:
        return {str(k): votes[k] for k in sorted(votes)}

    # -----------------------------
    # Vues pratiques
    # -----------------------------
    @property
    def label(self) -> str:
        """Identifiant tel qu'affiché à l'utilisateur."""
        return f"Session: {self.session_id}"

    def active_indices(self) -> List[int]:
        """Indices des joueurs encore en jeu dans la manche."""
        return [i for i in range(len(self.players)) if i not in self.eliminated]

    # -----------------------------
    # Sérialisation
    # -----------------------------
    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self) -> bytes:
        return dumps(self.to_document())

    @classmethod
    def from_json(cls, raw: Union[bytes, str], session_id: Optional[str] = None) -> "Session":
        """
        Relit un document JSON et vérifie les invariants.
        Lève `CorruptSession` si le JSON est illisible, mal typé ou incohérent.
        """
        try:
            data = loads(raw)
        except JSONDecodeError as exc:
            raise CorruptSession(session_id, f"JSON illisible ({exc})") from exc
        if not isinstance(data, dict):
            raise CorruptSession(session_id, "document JSON attendu sous forme d'objet")
        try:
            session = cls.model_validate(data)
        except ValidationError as exc:
            raise CorruptSession(session_id, f"schéma invalide ({exc.error_count()} erreur(s))") from exc
        if session_id and session.session_id != session_id:
            raise CorruptSession(session_id, f"identifiant inattendu {session.session_id!r}")
        session.validate_invariants()
        return session

    # -----------------------------
    # Invariants
    # -----------------------------
    def validate_invariants(self) -> None:
        """Lève `CorruptSession` à la première incohérence trouvée."""
        sid = self.session_id
        if not sid.strip():
            raise CorruptSession(sid, "session_id vide")

        names = [p.name.strip() for p in self.players]
        if any(not n for n in names):
            raise CorruptSession(sid, "nom de joueur vide")
        if len(set(names)) != len(names):
            raise CorruptSession(sid, "noms de joueurs en double")

        n = len(self.players)
        if self.game_screen == GameScreen.SETUP:
            return

        if n < MIN_PLAYERS:
            raise CorruptSession(sid, f"{n} joueur(s) hors écran Setup")
        if len(self.cards) != n:
            raise CorruptSession(sid, f"{len(self.cards)} carte(s) pour {n} joueurs")
        if self.imposter_index >= n:
            raise CorruptSession(sid, f"imposter_index {self.imposter_index} hors bornes")
        imposters = [i for i, card in enumerate(self.cards) if card.is_imposter]
        if imposters != [self.imposter_index]:
            raise CorruptSession(sid, f"cartes imposteur {imposters} != [{self.imposter_index}]")

        for label, indices in (("eliminated", self.eliminated), ("revealed", self.revealed)):
            out = [i for i in indices if not 0 <= i < n]
            if out:
                raise CorruptSession(sid, f"{label} hors bornes: {out}")

        # Après le dépouillement, le joueur éliminé garde le vote qu'il a exprimé.
        voting = self.game_screen == GameScreen.VOTING
        for voter, target in self.votes.items():
            if not 0 <= voter < n or (voting and voter in self.eliminated):
                raise CorruptSession(sid, f"votant {voter} invalide")
            if not 0 <= target < n or target == voter or (voting and target in self.eliminated):
                raise CorruptSession(sid, f"vote {voter}->{target} invalide")
