"""
Module routes/game.py
Rôle:
- Endpoints du cycle de partie : création, kills, lecture d'état, reset,
  et sonde du canal temps réel.

Contrat de réponse:
- succès : {"success": true, ...}
- erreur d'infrastructure ou d'entrée : {"success": false, "error": "..."} avec
  le code HTTP porté par `GameError.status_code` (400/404/503).
- refus de règle (kill) : {"success": false, "message", "reason"} en 400.

Intégrations:
- GameEngine (app.state.engine) via la dépendance `get_engine`.
- optional_host : la lecture d'état renvoie la vue hôte si la requête est authentifiée.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from murder_game.deps.auth import get_engine, optional_host
from murder_game.models.requests import KillRequest, StartGameRequest
from murder_game.services.errors import GameError
from murder_game.services.game_engine import GameEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/game", tags=["game"])


def error_response(exc: GameError, action: str) -> JSONResponse:
    """Journalise puis convertit une `GameError` en réponse JSON."""
    if exc.status_code >= 500:
        logger.error("%s failed", action, extra={"error": exc.message})
    else:
        logger.warning("%s rejected", action, extra={"error": exc.message})
    return JSONResponse({"success": False, "error": exc.message}, status_code=exc.status_code)


@router.post("/start")
def start_game(
    body: StartGameRequest,
    request: Request,
    engine: GameEngine = Depends(get_engine),
):
    """Crée une partie, tire les rôles et renvoie l'état hôte + un lien par joueur."""
    try:
        created = engine.start_game(body, base_url=request.app.state.settings.BASE_URL)
    except GameError as exc:
        return error_response(exc, "Start game")
    return {"success": True, **created}


@router.post("/kill")
def kill(body: KillRequest, engine: GameEngine = Depends(get_engine)):
    """
    Tentative de kill d'un meurtrier.
    - 400 si gameCode / murdererCode / victimCode manque.
    - 200 si le kill est enregistré, 400 avec `reason` sinon.
    """
    if not (body.game_code and body.murderer_code and body.victim_code):
        return JSONResponse(
            {"success": False, "error": "Missing required fields: gameCode, murdererCode, victimCode"},
            status_code=400,
        )
    result = engine.record_kill_attempt(body.game_code, body.murderer_code, body.victim_code)
    return JSONResponse(result.to_response(), status_code=200 if result.success else 400)


@router.get("/kill")
def kill_status(
    gameCode: str = Query(...),
    playerCode: str = Query(...),
    engine: GameEngine = Depends(get_engine),
):
    """Cooldown et cibles disponibles d'un joueur."""
    try:
        status = engine.kill_status(gameCode, playerCode)
    except GameError as exc:
        return error_response(exc, "Kill status")
    return {"success": True, **status}


@router.get("/state")
def get_state(
    gameCode: Optional[str] = Query(None),
    playerCode: Optional[str] = Query(None),
    is_host: bool = Depends(optional_host),
    engine: GameEngine = Depends(get_engine),
):
    """
    État de la partie, caviardé selon l'appelant :
    - hôte authentifié → vue complète,
    - `playerCode` → vue joueur + `playerData`,
    - sinon → vue publique.
    """
    try:
        state = engine.get_state(gameCode, playerCode, is_host=is_host)
    except GameError as exc:
        return error_response(exc, "Get state")
    return {"success": True, "gameState": state, "playerData": state.get("playerData")}


@router.delete("/state")
def reset_state(
    gameCode: Optional[str] = Query(None),
    engine: GameEngine = Depends(get_engine),
):
    """Supprime la partie `gameCode` (idempotent)."""
    if not (gameCode or "").strip():
        return JSONResponse({"success": False, "error": "Game code is required"}, status_code=400)
    try:
        engine.reset_game(gameCode)
    except GameError as exc:
        return error_response(exc, "Reset game")
    return {"success": True, "message": "Game reset"}


@router.get("/socket")
def socket_endpoint(request: Request, gameCode: Optional[str] = Query(None)):
    """Indique au front où ouvrir le websocket de la partie."""
    code = (gameCode or "").strip() or request.app.state.settings.DEFAULT_GAME_CODE
    return {"status": "ready", "endpoint": f"/ws/game/{code}"}
