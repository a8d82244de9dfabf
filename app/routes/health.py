"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK + backend de stockage actif).

Intégrations:
- settings: nom d'app + options de persistance.
- session_store: backend réellement utilisé par les moteurs de partie.
"""
from fastapi import APIRouter

from app.config.settings import settings
from app.services.session_store import get_sync, list_session_ids

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    """Renvoie un OK minimal avec le nom de service et le stockage configuré."""
    return {
        "ok": True,
        "service": settings.APP_NAME,
        "store_backend": get_sync().backend.name,
        "server_persistence": settings.SERVER_PERSISTENCE,
        "loaded_sessions": len(list_session_ids()),
    }
