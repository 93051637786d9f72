"""
Module routes/host.py
Rôle:
- Tableau de bord hôte : état complet (rôles compris) + liens joueurs à partager.
- Un visiteur non authentifié est redirigé vers `settings.LOGIN_PATH`.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from murder_game.deps.auth import get_engine, optional_host
from murder_game.services.game_engine import GameEngine

router = APIRouter(prefix="/host", tags=["host"])


@router.get("")
def host_dashboard(
    request: Request,
    gameCode: Optional[str] = Query(None),
    is_host: bool = Depends(optional_host),
    engine: GameEngine = Depends(get_engine),
):
    if not is_host:
        return RedirectResponse(request.app.state.settings.LOGIN_PATH, status_code=303)
    return {"success": True, **engine.host_dashboard(gameCode)}
