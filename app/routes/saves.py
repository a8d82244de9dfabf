"""
Module routes/saves.py
Rôle:
- Fonctions serveur de sauvegarde disque, exposées en HTTP pour la couche présentation.
- Monté seulement si `settings.SERVER_PERSISTENCE` est vrai (voir app/main.py).

Endpoints:
- GET    /saves               → liste des session_id sauvegardés
- GET    /saves/{session_id}  → document Session (404 si absent)
- PUT    /saves/{session_id}  → écrit le document Session reçu
- DELETE /saves/{session_id}  → supprime la sauvegarde

Codes retour:
- 400 identifiant invalide ou incohérent / document qui viole les invariants
- 422 fichier relu mais corrompu
- 503 échec du stockage disque
"""
from fastapi import APIRouter, HTTPException

from app.models.game import Session
from app.services import disk_saves
from app.services.errors import CorruptSession, InvalidSessionId, StoreIOError

router = APIRouter(prefix="/saves", tags=["saves"])


def _storage_error(exc: StoreIOError) -> HTTPException:
    if isinstance(exc, InvalidSessionId):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=503, detail=str(exc))


@router.get("")
async def list_saves():
    """Retourne les identifiants des parties sauvegardées (ordre alphabétique)."""
    try:
        return {"ok": True, "sessions": disk_saves.list_saved_games()}
    except StoreIOError as exc:
        raise _storage_error(exc)


@router.get("/{session_id}")
async def load_save(session_id: str):
    """Relit une partie sauvegardée (document JSON complet)."""
    try:
        session = disk_saves.load_game_from_disk(session_id)
    except CorruptSession as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except StoreIOError as exc:
        raise _storage_error(exc)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Aucune sauvegarde pour {session_id}")
    return session.to_document()


@router.put("/{session_id}")
async def save(session_id: str, session: Session):
    """Écrit la partie reçue; l'identifiant du chemin doit correspondre au document."""
    if session.session_id != session_id:
        raise HTTPException(status_code=400, detail="session_id du chemin et du document différents")
    try:
        disk_saves.save_game_to_disk(session)
    except CorruptSession as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StoreIOError as exc:
        raise _storage_error(exc)
    return {"ok": True, "session_id": session_id}


@router.delete("/{session_id}")
async def delete_save(session_id: str):
    try:
        disk_saves.delete_saved_game(session_id)
    except StoreIOError as exc:
        raise _storage_error(exc)
    return {"ok": True, "session_id": session_id}
