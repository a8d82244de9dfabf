"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres du moteur Agent-X (joueurs, barème, persistance).
- Les valeurs par défaut conviennent pour une partie locale sur un seul appareil.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from app.config.settings import settings`.

Persistance
-----------
- `STORE_BACKEND="local"` : stockage "navigateur" propre à l'appareil
  (clé/valeur, éventuellement recopié dans `LOCAL_STORAGE_PATH`).
- `STORE_BACKEND="disk"` : un fichier `<session_id>.json` par partie dans `SAVE_DIR`,
  ce qui permet de reprendre une partie depuis un second appareil.
- `SERVER_PERSISTENCE` active les routes `/saves` (fonctions serveur).

Exemples de `.env`
------------------
APP_NAME="Agent-X (salon)"
PORT=8080
STORE_BACKEND="disk"
SERVER_PERSISTENCE=true
SAVE_DIR="/var/opt/agent-x/saves"
ROUND_CAP=3
"""
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
import os

_APP_DIR = os.path.dirname(os.path.dirname(__file__))


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Agent-X Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Frontends autorisés (CORS)
    ALLOWED_ORIGINS: List[str] = ["http://localhost:8080", "http://127.0.0.1:8080"]

    # Répertoire des fichiers persistés (sauvegardes, stockage local)
    # Par défaut: <repo>/app/data
    DATA_DIR: str = os.path.join(_APP_DIR, "data")
    # Dossier des sauvegardes disque (défaut: <DATA_DIR>/saves)
    SAVE_DIR: Optional[str] = None
    # Fichier miroir du stockage local (None = mémoire seulement)
    LOCAL_STORAGE_PATH: Optional[str] = None
    # Quota du stockage local en octets (~5 Mo comme un navigateur, 0 = illimité)
    LOCAL_STORAGE_QUOTA: int = 5 * 1024 * 1024

    STORE_BACKEND: Literal["local", "disk"] = "disk"
    SERVER_PERSISTENCE: bool = True

    # Catalogue des paires de mots (commun, imposteur), livré avec le paquet
    WORD_PAIRS_PATH: str = os.path.join(_APP_DIR, "data", "word_pairs.json")

    # Règles de partie
    MAX_PLAYERS: int = 10
    ROUND_CAP: int = 5  # nombre maximal de manches par session
    IMPOSTER_CAUGHT_POINTS: int = 10   # pour chaque non-imposteur
    IMPOSTER_SURVIVED_POINTS: int = 20  # pour l'imposteur jamais démasqué

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def save_dir(self) -> str:
        return self.SAVE_DIR or os.path.join(self.DATA_DIR, "saves")


# Instance unique importable partout : `settings`
settings = Settings()
