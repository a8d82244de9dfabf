"""
Application FastAPI : point d'entrée
===================================

Rôle
----
- Instancie l'app FastAPI, configure le CORS pour le front et la journalisation,
- Monte les routeurs (santé, partie, sauvegardes disque),
- Liste les routes au démarrage (diagnostic).

Notes
-----
- `saves` n'est monté que si `SERVER_PERSISTENCE` est activé.
- Garder `ALLOWED_ORIGINS` en phase avec les URLs du front.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config.settings import settings
from app.routes.game import router as game_router
from app.routes.health import router as health_router
from app.routes.saves import router as saves_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# --- App FastAPI principale  ---
app = FastAPI(title=settings.APP_NAME)

# ===========================
# CORS
# ===========================
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ===========================
# Montage des routers
# ===========================
app.include_router(health_router)
app.include_router(game_router)

# Fonctions serveur de sauvegarde (reprise depuis un autre appareil)
if settings.SERVER_PERSISTENCE:
    app.include_router(saves_router)


# --- Racine utile pour "ping" simple (sans /health) ---
@app.get("/")
async def root():
    return {"ok": True, "service": "agent-x-backend"}


# --- Hook de démarrage ---
@app.on_event("startup")
async def list_routes():
    """Journalise le stockage configuré et la liste des routes (diagnostic)."""
    logger.info("== Store == backend=%s save_dir=%s", settings.STORE_BACKEND, settings.save_dir)
    for r in app.routes:
        methods = getattr(r, "methods", None)
        logger.info("route %s %s", getattr(r, "path", r), sorted(methods) if methods else "")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT)
