"""
Service: card_generator.py
Rôle:
- Distribuer les cartes d'une manche: un mot commun pour tous, un mot différent pour
  un unique imposteur tiré au sort.

Comportement:
- Deux tirages indépendants: la paire de mots, puis l'index de l'imposteur.
- Source aléatoire par défaut: `random.SystemRandom` (entropie OS, non prédictible).
- `rng` injectable (tout objet exposant `randrange`, ex: `random.Random(seed)`) pour des
  tirages reproductibles en test.
- `previous` = paire de la manche précédente: jamais retirée deux fois de suite tant que
  le catalogue contient au moins deux paires.
- `imposter_index` fourni: l'imposteur est imposé (manche suivante d'une même partie),
  seule la paire est tirée.

Erreurs:
- InsufficientPlayers si moins de 3 joueurs, EmptyCatalog si aucune paire.
  Rien n'est modifié dans ces deux cas.
"""
import logging
import random
from typing import List, Optional, Sequence, Tuple

from app.models.game import MIN_PLAYERS
from app.models.player import GameCard
from .errors import EmptyCatalog, InsufficientPlayers
from .word_catalog import WordPair

logger = logging.getLogger(__name__)

_SYSTEM_RANDOM = random.SystemRandom()


def previous_pair(cards: Sequence[GameCard]) -> Optional[WordPair]:
    """Reconstitue la paire (commun, imposteur) à partir des cartes d'une manche."""
    common = next((c.word for c in cards if not c.is_imposter), None)
    imposter = next((c.word for c in cards if c.is_imposter), None)
    if common is None or imposter is None:
        return None
    return common, imposter


def generate_round(
    players: Sequence,
    word_pairs: Sequence[WordPair],
    round_number: int,
    rng=None,
    previous: Optional[WordPair] = None,
    imposter_index: Optional[int] = None,
) -> Tuple[List[GameCard], int]:
    """
    Tire une paire et un imposteur pour `len(players)` joueurs.

    Args:
        players: joueurs de la session (seule la taille est utilisée).
        word_pairs: catalogue de paires (commun, imposteur).
        round_number: numéro de la manche (journalisation).
        rng: source aléatoire; `SystemRandom` si None.
        previous: paire de la manche précédente, à ne pas répéter.
        imposter_index: imposteur déjà désigné (sinon tiré au sort).

    Returns:
        (cards, imposter_index) avec `cards[imposter_index].is_imposter` seul à True.
    """
    count = len(players)
    if count < MIN_PLAYERS:
        raise InsufficientPlayers(count, MIN_PLAYERS)
    pairs = [tuple(p) for p in word_pairs]
    if not pairs:
        raise EmptyCatalog()

    rng = rng or _SYSTEM_RANDOM

    candidates = pairs
    if previous is not None and len(pairs) >= 2:
        # `or pairs`: catalogue fait uniquement de copies de `previous`
        candidates = [p for p in pairs if p != tuple(previous)] or pairs
    common_word, imposter_word = candidates[rng.randrange(len(candidates))]

    if imposter_index is None:
        imposter_index = rng.randrange(count)
    elif not 0 <= imposter_index < count:
        raise ValueError(f"imposter_index {imposter_index} hors bornes pour {count} joueurs")

    cards = [
        GameCard(word=imposter_word if i == imposter_index else common_word, is_imposter=(i == imposter_index))
        for i in range(count)
    ]
    logger.debug(
        "Round dealt",
        extra={"round_number": round_number, "players": count, "catalog_size": len(pairs)},
    )
    return cards, imposter_index
