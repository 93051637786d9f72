"""
Module routes/health.py
Rôle:
- Endpoint de santé : service OK, nombre de parties connues, abonnés temps réel.
"""
from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health(request: Request):
    """Renvoie un OK minimal avec le nom de service configuré."""
    engine = request.app.state.engine
    return {
        "ok": True,
        "service": request.app.state.settings.APP_NAME,
        "games": len(engine.store.list_codes()),
        "realtime": engine.broadcaster.stats(),
    }
