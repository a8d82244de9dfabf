"""
Service: word_catalog.py
Rôle:
- Charger en mémoire le référentiel des paires de mots (catalogue statique).
- Exposer `CATALOG.pairs()` pour le générateur de cartes.

Fichier source:
- app/data/word_pairs.json → {"pairs": [["Coffee", "Tea"], ["Cat", "Dog"], ...]}
  (mot commun, mot imposteur). Chemin surchargeable via `settings.WORD_PAIRS_PATH`.

Remarque:
- Les entrées mal formées (pas exactement deux mots distincts non vides) sont ignorées.
- Un catalogue vide n'est pas une erreur au chargement: c'est `generate_round` qui lèvera
  `EmptyCatalog` au moment de distribuer.
"""
import logging
from pathlib import Path
from typing import Any, List, Optional, Tuple

from app.config.settings import settings
from .io_utils import JSONDecodeError, read_json

logger = logging.getLogger(__name__)

WordPair = Tuple[str, str]


def _parse_pair(entry: Any) -> Optional[WordPair]:
    if not isinstance(entry, (list, tuple)) or len(entry) != 2:
        return None
    common, imposter = (w.strip() if isinstance(w, str) else "" for w in entry)
    if not common or not imposter or common.casefold() == imposter.casefold():
        return None
    return common, imposter


class WordCatalog:
    """Catalogue des paires (commun, imposteur), dédoublonné et dans l'ordre du fichier."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or settings.WORD_PAIRS_PATH)
        self._pairs: List[WordPair] = []
        self.load()

    def load(self) -> None:
        """Charge le JSON; fichier absent ou illisible ⇒ catalogue vide (journalisé)."""
        try:
            raw = read_json(self.path) or {}
        except (OSError, JSONDecodeError):
            logger.exception("Word catalog unreadable", extra={"catalog_path": str(self.path)})
            raw = {}

        pairs: List[WordPair] = []
        seen = set()
        for entry in raw.get("pairs", []) if isinstance(raw, dict) else []:
            pair = _parse_pair(entry)
            if pair is None:
                logger.warning("Skipping malformed word pair %r", entry)
                continue
            if pair not in seen:
                seen.add(pair)
                pairs.append(pair)
        self._pairs = pairs
        logger.debug("Word catalog loaded", extra={"catalog_path": str(self.path), "pairs": len(pairs)})

    def pairs(self) -> List[WordPair]:
        """Retourne une copie de la liste des paires."""
        return list(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)


CATALOG = WordCatalog()
