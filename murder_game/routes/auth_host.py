"""
Routes d'authentification hôte
==============================

- GET  /auth/host/login  : décrit le formulaire de connexion (cible de la redirection de /host)
- POST /auth/host/login  : vérifie les identifiants hôte et POSE un cookie 'host_session'
- POST /auth/host/logout : supprime la session côté serveur + EFFACE le cookie client

Le cookie est HttpOnly, `SameSite=Lax`, et `Secure` hors DEBUG. Les routes
protégées utilisent ensuite `Depends(host_required)` qui accepte soit ce cookie
soit un Bearer.

Configuration attendue
----------------------
- `settings.HOST_USER` / `settings.HOST_PASSWORD`
- `settings.HOST_SESSION_TTL_SECONDS`
- `settings.DEBUG` : True en dev → cookie non `Secure`.
"""
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from murder_game.deps.auth import HOST_COOKIE_NAME, HostSessionRegistry, get_host_sessions
from murder_game.models.requests import HostLogin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/host", tags=["auth"])


@router.get("/login")
def host_login_form(request: Request):
    """
    Point d'arrivée de la redirection anonyme de /host.
    Réponse: { "ok": true, "login": { method, action, fields } }
    """
    return {
        "ok": True,
        "login": {
            "method": "POST",
            "action": request.app.state.settings.LOGIN_PATH,
            "fields": ["username", "password"],
        },
    }


@router.post("/login")
def host_login(
    p: HostLogin,
    request: Request,
    response: Response,
    sessions: HostSessionRegistry = Depends(get_host_sessions),
):
    """
    Authentifie l'hôte et pose le cookie de session.
    Réponse: { "ok": true, "ttl": <seconds> } ; 401 si identifiants invalides.
    """
    settings = request.app.state.settings
    user_ok = secrets.compare_digest(p.username, settings.HOST_USER)
    password_ok = secrets.compare_digest(p.password, settings.HOST_PASSWORD)
    if not (user_ok and password_ok):
        logger.warning("Host login refused", extra={"username": p.username})
        raise HTTPException(status_code=401, detail="Invalid credentials")

    sid = sessions.create()
    response.set_cookie(
        key=HOST_COOKIE_NAME,
        value=sid,
        httponly=True,
        samesite="lax",
        secure=not settings.DEBUG,
        max_age=sessions.ttl_seconds,
        path="/",
    )
    logger.info("Host logged in")
    return {"ok": True, "ttl": sessions.ttl_seconds}


@router.post("/logout")
def host_logout(
    request: Request,
    response: Response,
    sessions: HostSessionRegistry = Depends(get_host_sessions),
):
    """Invalide la session hôte et efface le cookie. Réponse: { "ok": true }"""
    sessions.delete(request.cookies.get(HOST_COOKIE_NAME))
    response.delete_cookie(HOST_COOKIE_NAME, path="/")
    return {"ok": True}
