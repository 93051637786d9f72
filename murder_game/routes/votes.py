"""
Module routes/votes.py
Rôle:
- Vote d'élimination collectif : bulletins des joueurs, dépouillement,
  élimination et remise à zéro décidées par l'hôte.

Protection:
- /game/vote et /game/vote/results : ouverts (scopés par voterCode / gameCode).
- /game/vote/eliminate et /game/vote/reset : Depends(host_required).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from murder_game.deps.auth import get_engine, host_required
from murder_game.models.requests import EliminateRequest, VoteRequest
from murder_game.routes.game import error_response
from murder_game.services.errors import GameError
from murder_game.services.game_engine import GameEngine

router = APIRouter(prefix="/game/vote", tags=["votes"])


@router.post("")
def cast_vote(body: VoteRequest, engine: GameEngine = Depends(get_engine)):
    result = engine.cast_vote(body.game_code, body.voter_code, body.target_code)
    return JSONResponse(result.to_response(), status_code=200 if result.success else 400)


@router.get("/results")
def vote_results(gameCode: Optional[str] = Query(None), engine: GameEngine = Depends(get_engine)):
    """Dépouillement courant (voix par cible, tête du vote ou égalité)."""
    try:
        results = engine.vote_results(gameCode)
    except GameError as exc:
        return error_response(exc, "Vote results")
    return {"success": True, **results}


@router.post("/eliminate", dependencies=[Depends(host_required)])
def eliminate(body: EliminateRequest, engine: GameEngine = Depends(get_engine)):
    """Élimine `targetCode`, ou à défaut le joueur en tête du vote."""
    result = engine.eliminate_by_vote(body.game_code, body.target_code)
    return JSONResponse(result.to_response(), status_code=200 if result.success else 400)


@router.post("/reset", dependencies=[Depends(host_required)])
def reset_votes(gameCode: Optional[str] = Query(None), engine: GameEngine = Depends(get_engine)):
    try:
        result = engine.reset_votes(gameCode)
    except GameError as exc:
        return error_response(exc, "Reset votes")
    return result.to_response()
