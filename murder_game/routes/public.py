"""
Module routes/public.py
Rôle:
- Écran de statut collectif : aucun rôle, aucun auteur de kill.

Robustesse:
- Partie absente ou code invalide → 200 avec l'état vide (`exists: false`),
  pour que l'écran affiche une vue par défaut au lieu d'une erreur.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from murder_game.deps.auth import get_engine
from murder_game.services.errors import GameError
from murder_game.services.game_engine import GameEngine
from murder_game.services.serializer import serialize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/game")
def public_game(gameCode: Optional[str] = Query(None), engine: GameEngine = Depends(get_engine)):
    try:
        state = engine.public_state(gameCode)
    except GameError as exc:
        logger.warning("Public state unavailable", extra={"game_code": gameCode, "error": exc.message})
        state = serialize(None)
    return {"ok": True, "gameState": state}
