"""
Module routes/game.py
Rôle:
- Piloter une partie côté serveur: chaque endpoint déclenche une transition du
  `GameEngine` de la session (chargé/caché par session_store).

Endpoints:
- POST /game/sessions                      → reprend `session_id` ou crée une session Setup
- GET  /game/{session_id}                  → vue publique (aucun mot secret)
- POST /game/{session_id}/start            → Setup → CardView
- POST /game/{session_id}/cards/{index}    → révèle la carte du joueur `index`
- POST /game/{session_id}/cards/viewed     → CardView → Discussion
- POST /game/{session_id}/voting/open      → Discussion → Voting
- POST /game/{session_id}/votes            → enregistre un vote
- POST /game/{session_id}/tally            → Voting → Scoring (force optionnel)
- POST /game/{session_id}/rounds/next      → Scoring → CardView
- POST /game/{session_id}/end              → Scoring → GameOver
- POST /game/{session_id}/new              → nouvelle partie (nouvel identifiant)
- GET  /game/{session_id}/standings        → classement

Codes retour:
- 400 entrée refusée (joueurs, catalogue vide, identifiant invalide)
- 404 session inconnue
- 409 transition illégale depuis l'écran courant

Remarque:
- Un échec de sauvegarde ne fait pas échouer la requête: il est renvoyé dans `warning`.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, Body, HTTPException
from pydantic import BaseModel, Field

from app.models.game import GameScreen
from app.services.errors import (
    EmptyCatalog,
    InsufficientPlayers,
    InvalidPlayers,
    InvalidSessionId,
    InvalidTransition,
)
from app.services.game_engine import GameEngine, TransitionResult
from app.services.session_store import (
    create_session_engine,
    get_session_engine,
    release_finished_engine,
    replace_session_engine,
    session_lock,
)

router = APIRouter(prefix="/game", tags=["game"])

# Écrans où l'imposteur et les mots peuvent être dévoilés à tous
_REVEAL_SCREENS = {GameScreen.SCORING, GameScreen.GAME_OVER}


# ---------------------------------------------------------------------------
# Modèles Pydantic
# ---------------------------------------------------------------------------
class SessionOpenPayload(BaseModel):
    session_id: Optional[str] = Field(None, description="Session à reprendre (sinon nouvelle)")


class StartPayload(BaseModel):
    names: List[str] = Field(..., description="Noms des joueurs, dans l'ordre de passage")


class VotePayload(BaseModel):
    voter: int = Field(..., ge=0, description="Index du votant")
    target: int = Field(..., ge=0, description="Index du joueur visé")


class TallyPayload(BaseModel):
    force: bool = Field(False, description="Clôturer même si tout le monde n'a pas voté")


class NewGamePayload(BaseModel):
    archive: bool = Field(False, description="Conserver l'ancienne sauvegarde")


# ---------------------------------------------------------------------------
# Helpers internes
# ---------------------------------------------------------------------------
def _public_view(engine: GameEngine) -> Dict[str, Any]:
    """Vue partagée de la session: les cartes restent privées jusqu'au dépouillement."""
    s = engine.session
    view: Dict[str, Any] = {
        "session_id": s.session_id,
        "label": s.label,
        "game_screen": s.game_screen.value,
        "round_number": s.round_number,
        "round_cap": s.round_cap,
        "players": [
            {"index": i, "name": p.name, "score": p.score, "eliminated": i in s.eliminated}
            for i, p in enumerate(s.players)
        ],
        "revealed": sorted(s.revealed),
        "next_viewer": engine.next_viewer(),
        "votes_cast": len(s.votes),
        "pending_voters": engine.pending_voters() if s.game_screen == GameScreen.VOTING else [],
        "last_tally": s.last_tally.model_dump(mode="json") if s.last_tally else None,
        "imposter_found": s.imposter_found,
    }
    if s.game_screen in _REVEAL_SCREENS:
        view["imposter_index"] = s.imposter_index
        view["words"] = {c.word: c.is_imposter for c in s.cards}
        view["can_continue"] = s.game_screen == GameScreen.SCORING and engine.can_continue()
    return view


def _result(engine: GameEngine, result: TransitionResult) -> Dict[str, Any]:
    return {
        "ok": True,
        "event": result.event,
        "persisted": result.persisted,
        "warning": result.warning,
        "payload": result.payload,
        "session": _public_view(engine),
    }


def _engine(session_id: str) -> GameEngine:
    try:
        engine = get_session_engine(session_id)
    except InvalidSessionId as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if engine is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} introuvable")
    return engine


@contextmanager
def _engine_errors() -> Iterator[None]:
    """Traduit les erreurs du moteur en réponses HTTP."""
    try:
        yield
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except (InsufficientPlayers, InvalidPlayers, EmptyCatalog) as exc:
        raise HTTPException(status_code=400, detail=str(exc))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/sessions")
async def open_session(payload: SessionOpenPayload = Body(default_factory=SessionOpenPayload)):
    """Reprend la session demandée si elle existe et est saine, sinon en crée une."""
    with session_lock():
        engine = create_session_engine(payload.session_id)
        return {"ok": True, "resumed": engine.session.session_id == payload.session_id,
                "session": _public_view(engine)}


@router.get("/{session_id}")
async def session_view(session_id: str):
    with session_lock():
        return _public_view(_engine(session_id))


@router.post("/{session_id}/start")
async def start_game(session_id: str, payload: StartPayload):
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        return _result(engine, engine.start_game(payload.names))


@router.post("/{session_id}/cards/viewed")
async def cards_viewed(session_id: str):
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        return _result(engine, engine.all_cards_viewed())


@router.post("/{session_id}/cards/{index}")
async def reveal_card(session_id: str, index: int):
    """Renvoie la carte du joueur `index` (à n'afficher que sur son écran)."""
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        result = engine.reveal_card(index)
        return {
            "ok": True,
            "index": index,
            "name": engine.session.players[index].name,
            "card": result.payload["card"].model_dump(),
            "next_viewer": engine.next_viewer(),
            "persisted": result.persisted,
            "warning": result.warning,
        }


@router.post("/{session_id}/voting/open")
async def open_voting(session_id: str):
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        return _result(engine, engine.open_voting())


@router.post("/{session_id}/votes")
async def submit_vote(session_id: str, payload: VotePayload):
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        return _result(engine, engine.submit_vote(payload.voter, payload.target))


@router.post("/{session_id}/tally")
async def tally_votes(session_id: str, payload: TallyPayload = Body(default_factory=TallyPayload)):
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        return _result(engine, engine.tally_votes(force=payload.force))


@router.post("/{session_id}/rounds/next")
async def next_round(session_id: str):
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        return _result(engine, engine.next_round())


@router.post("/{session_id}/end")
async def end_game(session_id: str):
    with session_lock(), _engine_errors():
        engine = _engine(session_id)
        result = engine.end_game()
        release_finished_engine(engine, result.persisted)
        return _result(engine, result)


@router.post("/{session_id}/new")
async def new_game(session_id: str, payload: NewGamePayload = Body(default_factory=NewGamePayload)):
    """Abandonne la session courante et en ouvre une nouvelle (écran Setup)."""
    with session_lock():
        engine = _engine(session_id)
        result = engine.new_game(archive=payload.archive)
        replace_session_engine(session_id, engine)
        return _result(engine, result)


@router.get("/{session_id}/standings")
async def standings(session_id: str):
    """Classement des joueurs par score décroissant."""
    with session_lock():
        engine = _engine(session_id)
        return {"ok": True, "round_number": engine.session.round_number, "standings": engine.standings()}
