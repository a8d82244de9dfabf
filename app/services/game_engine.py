"""
Service: game_engine.py
Rôle:
- Machine à états d'une partie Agent-X. Seule entité autorisée à modifier une `Session`.
- Chaque transition acceptée est immédiatement persistée via `SessionSync`.

Écrans & événements:
    Setup      --start_game(names)------> CardView
    CardView   --reveal_card(i)---------> CardView   (chaque joueur voit sa carte une fois)
    CardView   --all_cards_viewed-------> Discussion (tous les joueurs ont vu leur carte)
    Discussion --open_voting------------> Voting
    Voting     --submit_vote(v, t)------> Voting     (dernier vote écrase le précédent)
    Voting     --tally_votes(force)-----> Scoring    (tout le monde a voté, ou force)
    Scoring    --next_round-------------> CardView   (imposteur libre et plafond non atteint;
                                                      même imposteur, nouvelle paire de mots)
    Scoring    --end_game---------------> GameOver   (imposteur démasqué, ou plafond atteint)
    *          --new_game (hors machine)-> Setup, nouvel identifiant

Dépouillement:
- Le joueur avec le plus de voix est éliminé.
- Égalité au sommet (ou aucun vote lors d'une clôture forcée): personne n'est éliminé et
  l'imposteur est considéré comme non démasqué pour la manche.
- Imposteur éliminé: chaque autre joueur gagne IMPOSTER_CAUGHT_POINTS.
- L'imposteur est désigné une fois par partie (start_game) et reste le même d'une manche
  à l'autre. Fin de partie sans qu'il ait été démasqué: il gagne IMPOSTER_SURVIVED_POINTS.

Erreurs:
- Événement illégal → `InvalidTransition` (session intacte).
- Échec d'écriture → la transition est conservée en mémoire, un avertissement est renvoyé
  dans `TransitionResult.warning`.
"""
from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from app.config.settings import settings
from app.models.game import MIN_PLAYERS, GameScreen, Session, TallyResult
from app.models.player import GameCard, Player
from .card_generator import generate_round, previous_pair
from .errors import InsufficientPlayers, InvalidPlayers, InvalidTransition, StoreIOError
from .session_sync import SessionSync, mint_session_id
from .word_catalog import CATALOG, WordPair

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    event: str
    screen: GameScreen
    persisted: bool = True
    warning: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GameEngine:
    session: Session
    sync: Optional[SessionSync] = None
    word_pairs: Optional[Sequence[WordPair]] = None
    rng: Any = None
    max_players: int = field(default_factory=lambda: settings.MAX_PLAYERS)
    caught_points: int = field(default_factory=lambda: settings.IMPOSTER_CAUGHT_POINTS)
    survived_points: int = field(default_factory=lambda: settings.IMPOSTER_SURVIVED_POINTS)

    # -----------------------------
    # Helpers internes
    # -----------------------------
    def _require(self, event: str, *screens: GameScreen, reason: Optional[str] = None) -> None:
        if self.session.game_screen not in screens:
            raise InvalidTransition(event, self.session.game_screen.value, reason)

    def _reject(self, event: str, reason: str) -> InvalidTransition:
        return InvalidTransition(event, self.session.game_screen.value, reason)

    def _pairs(self) -> Sequence[WordPair]:
        return self.word_pairs if self.word_pairs is not None else CATALOG.pairs()

    def _deal(
        self, players: Sequence[Player], round_number: int, imposter_index: Optional[int] = None
    ) -> tuple[List[GameCard], int]:
        previous = previous_pair(self.session.cards) if self.session.cards else None
        return generate_round(
            players, self._pairs(), round_number, rng=self.rng, previous=previous, imposter_index=imposter_index
        )

    def _commit(self, event: str, **payload: Any) -> TransitionResult:
        """Horodate, persiste (best effort) et journalise une transition acceptée."""
        self.session.updated_at = time.time()
        result = TransitionResult(event=event, screen=self.session.game_screen, payload=payload)
        if self.sync is not None:
            try:
                self.sync.persist(self.session)
            except StoreIOError as exc:
                result.persisted = False
                result.warning = f"Sauvegarde impossible: {exc}"
                logger.warning(
                    "Session persist failed",
                    extra={"session_id": self.session.session_id, "event": event},
                )
        logger.info(
            "Transition %s -> %s",
            event,
            self.session.game_screen.value,
            extra={"session_id": self.session.session_id, "round_number": self.session.round_number},
        )
        return result

    def _check_index(self, event: str, index: int, role: str) -> None:
        if not 0 <= index < len(self.session.players):
            raise self._reject(event, f"{role} {index} inconnu")

    # -----------------------------
    # Vues (lecture seule)
    # -----------------------------
    def next_viewer(self) -> Optional[int]:
        """Prochain joueur (ordre de passage de l'appareil) qui n'a pas vu sa carte."""
        if self.session.game_screen != GameScreen.CARD_VIEW:
            return None
        for i in range(len(self.session.players)):
            if i not in self.session.revealed:
                return i
        return None

    def active_indices(self) -> List[int]:
        return self.session.active_indices()

    def pending_voters(self) -> List[int]:
        """Joueurs encore en jeu qui n'ont pas voté."""
        return [i for i in self.session.active_indices() if i not in self.session.votes]

    def standings(self) -> List[Dict[str, Any]]:
        """Classement par score décroissant (ordre de saisie en cas d'égalité)."""
        ranked = sorted(enumerate(self.session.players), key=lambda item: item[1].score, reverse=True)
        return [
            {"rank": rank, "index": idx, "name": player.name, "score": player.score}
            for rank, (idx, player) in enumerate(ranked, start=1)
        ]

    def can_continue(self) -> bool:
        """En Scoring: une nouvelle manche est-elle possible ?"""
        s = self.session
        return not s.imposter_found and s.round_number < s.round_cap

    # -----------------------------
    # Transitions
    # -----------------------------
    def start_game(self, names: Sequence[str]) -> TransitionResult:
        """Setup → CardView: crée les joueurs et distribue la première manche."""
        event = "start_game"
        self._require(event, GameScreen.SETUP)
        cleaned = [(n or "").strip() for n in names]
        if len(cleaned) < MIN_PLAYERS:
            raise InsufficientPlayers(len(cleaned), MIN_PLAYERS)
        if len(cleaned) > self.max_players:
            raise InvalidPlayers(f"Au plus {self.max_players} joueurs (reçu: {len(cleaned)})")
        if any(not n for n in cleaned):
            raise InvalidPlayers("Chaque joueur doit avoir un nom")
        duplicates = sorted({n for n in cleaned if cleaned.count(n) > 1})
        if duplicates:
            raise InvalidPlayers(f"Noms en double: {', '.join(duplicates)}")

        players = [Player(name=n) for n in cleaned]
        cards, imposter_index = self._deal(players, 1)

        s = self.session
        s.players = players
        s.round_number = 1
        s.cards = cards
        s.imposter_index = imposter_index
        s.eliminated = set()
        s.votes = {}
        s.revealed = set()
        s.imposter_found = False
        s.last_tally = None
        s.game_screen = GameScreen.CARD_VIEW
        return self._commit(event, players=len(players))

    def reveal_card(self, index: int) -> TransitionResult:
        """
        Marque la carte du joueur `index` comme vue; la carte est dans `payload["card"]`.
        Revoir sa carte ne déclenche pas de nouvelle sauvegarde.
        """
        event = "reveal_card"
        self._require(event, GameScreen.CARD_VIEW)
        self._check_index(event, index, "joueur")
        card = self.session.cards[index]
        if index in self.session.revealed:
            return TransitionResult(
                event=event, screen=self.session.game_screen, payload={"index": index, "card": card}
            )
        self.session.revealed.add(index)
        return self._commit(event, index=index, card=card)

    def all_cards_viewed(self) -> TransitionResult:
        event = "all_cards_viewed"
        self._require(event, GameScreen.CARD_VIEW)
        missing = [i for i in range(len(self.session.players)) if i not in self.session.revealed]
        if missing:
            names = ", ".join(self.session.players[i].name for i in missing)
            raise self._reject(event, f"cartes pas encore vues: {names}")
        self.session.game_screen = GameScreen.DISCUSSION
        return self._commit(event)

    def open_voting(self) -> TransitionResult:
        event = "open_voting"
        self._require(event, GameScreen.DISCUSSION)
        self.session.votes = {}
        self.session.game_screen = GameScreen.VOTING
        return self._commit(event)

    def submit_vote(self, voter: int, target: int) -> TransitionResult:
        event = "submit_vote"
        self._require(event, GameScreen.VOTING)
        self._check_index(event, voter, "votant")
        self._check_index(event, target, "joueur visé")
        if voter in self.session.eliminated:
            raise self._reject(event, f"le votant {voter} est éliminé")
        if target in self.session.eliminated:
            raise self._reject(event, f"le joueur visé {target} est éliminé")
        if voter == target:
            raise self._reject(event, "impossible de voter contre soi-même")
        self.session.votes[voter] = target
        return self._commit(event, voter=voter, target=target)

    def tally_votes(self, force: bool = False) -> TransitionResult:
        """Voting → Scoring. Sans `force`, exige un vote de chaque joueur encore en jeu."""
        event = "tally_votes"
        self._require(event, GameScreen.VOTING)
        pending = self.pending_voters()
        if pending and not force:
            raise self._reject(event, f"{len(pending)} joueur(s) n'ont pas voté")

        s = self.session
        counts = Counter(s.votes.values())
        ranking = counts.most_common()
        top = ranking[0][1] if ranking else 0
        leaders = [idx for idx, n in ranking if n == top]
        tally = TallyResult(counts=dict(counts), forced=bool(pending), tie=len(leaders) != 1)
        if len(leaders) == 1:
            eliminated = leaders[0]
            tally.eliminated_index = eliminated
            s.eliminated.add(eliminated)
            if eliminated == s.imposter_index:
                s.imposter_found = True
                for i, player in enumerate(s.players):
                    if i != s.imposter_index:
                        player.score += self.caught_points
        s.last_tally = tally
        s.game_screen = GameScreen.SCORING
        return self._commit(
            event,
            eliminated_index=tally.eliminated_index,
            imposter_found=s.imposter_found,
            tie=tally.tie,
        )

    def next_round(self) -> TransitionResult:
        """
        Scoring → CardView: nouvelle manche avec le même imposteur, qui reçoit à nouveau
        le mot différent d'une nouvelle paire. Éliminations et votes remis à zéro.
        """
        event = "next_round"
        self._require(event, GameScreen.SCORING)
        s = self.session
        if s.imposter_found:
            raise self._reject(event, "l'imposteur a été démasqué")
        if s.round_number >= s.round_cap:
            raise self._reject(event, f"plafond de {s.round_cap} manche(s) atteint")

        cards, _ = self._deal(s.players, s.round_number + 1, imposter_index=s.imposter_index)
        s.round_number += 1
        s.cards = cards
        s.eliminated = set()
        s.votes = {}
        s.revealed = set()
        s.last_tally = None
        s.game_screen = GameScreen.CARD_VIEW
        return self._commit(event)

    def end_game(self) -> TransitionResult:
        """Scoring → GameOver, avec le bonus de l'imposteur s'il n'a jamais été démasqué."""
        event = "end_game"
        self._require(event, GameScreen.SCORING)
        s = self.session
        if self.can_continue():
            raise self._reject(event, "imposteur non démasqué et plafond de manches non atteint")
        if not s.imposter_found:
            s.players[s.imposter_index].score += self.survived_points
        s.game_screen = GameScreen.GAME_OVER
        return self._commit(event, imposter_found=s.imposter_found, imposter_index=s.imposter_index)

    def new_game(self, archive: bool = False) -> TransitionResult:
        """
        Réinitialisation hors machine à états, autorisée depuis n'importe quel écran:
        nouvel identifiant, écran Setup; l'ancien enregistrement est supprimé ou archivé.
        """
        event = "new_game"
        old_id = self.session.session_id
        if self.sync is not None:
            self.sync.discard(old_id, archive=archive)
            self.session = self.sync.load_or_create(None)
        else:
            self.session = Session(session_id=mint_session_id(), round_cap=self.session.round_cap)
        logger.info("New game", extra={"session_id": self.session.session_id, "previous_session_id": old_id})
        return TransitionResult(event=event, screen=self.session.game_screen,
                                persisted=False, payload={"previous_session_id": old_id})
