"""
Utilitaires IO JSON (rapides) basés sur orjson.
- dumps(data) → bytes (clés triées: même données ⇒ mêmes octets)
- loads(raw)  → Any (bytes ou str)
- read_json(Path)  → Any | None (None si fichier manquant)
- write_bytes(Path, raw) → écrit via un fichier temporaire puis `replace`
- write_json(Path, data) → dumps + write_bytes

Attention:
- orjson renvoie/attend des bytes; on lit/écrit en mode binaire.
- Pas d'indentation (performance/praticité).
- Les erreurs système (OSError) et de décodage (orjson.JSONDecodeError) remontent
  telles quelles; c'est l'appelant qui décide de les traduire.
"""
import orjson as json
from pathlib import Path
from typing import Any, Union

JSONDecodeError = json.JSONDecodeError


def dumps(data: Any) -> bytes:
    """Sérialise en JSON compact, clés triées."""
    return json.dumps(data, option=json.OPT_SORT_KEYS)


def loads(raw: Union[bytes, str]) -> Any:
    return json.loads(raw)


def read_json(path: Path) -> Any:
    """Lit un fichier JSON (ou None s'il n'existe pas)."""
    if not path.exists():
        return None
    with path.open("rb") as f:
        return json.loads(f.read())


def write_bytes(path: Path, raw: bytes) -> None:
    """Écrit des octets via un fichier temporaire (dossier parent créé si absent)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("wb") as f:
        f.write(raw)
    tmp.replace(path)


def write_json(path: Path, data: Any) -> None:
    """Écrit un fichier JSON de manière sûre (écriture complète ou rien)."""
    write_bytes(path, dumps(data))
