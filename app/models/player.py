"""
Models / player.py
Rôle:
- Définir la structure d'un joueur et d'une carte de manche (modèles Pydantic).

Champs Player:
- name: nom d'affichage (non vide, unique dans la session).
- score: total de points, modifié uniquement lors du décompte/fin de partie.

Champs GameCard:
- word: mot secret reçu pour la manche.
- is_imposter: True pour l'unique carte "imposteur" de la manche.
"""
from pydantic import BaseModel, ConfigDict, Field


class Player(BaseModel):
    """Profil joueur (jamais supprimé en cours de session, seulement éliminé)."""
    name: str = Field(..., min_length=1)  # nom saisi à la configuration
    score: int = Field(0, ge=0)  # points cumulés sur la session


class GameCard(BaseModel):
    """Carte distribuée à un joueur; figée une fois révélée."""
    model_config = ConfigDict(frozen=True)

    word: str
    is_imposter: bool = False
