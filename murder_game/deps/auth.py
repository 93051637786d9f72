"""
Dépendances FastAPI (auth hôte + accès au moteur)
=================================================

Objectif
--------
Fournir une *dependency* `host_required` qui autorise l'accès hôte via:
1) un **cookie de session HttpOnly** `host_session` (interface hôte du front), *ou*
2) un **Bearer token** `settings.HOST_TOKEN` (pratique en dev/CLI).

Les sessions hôte vivent en mémoire (`HostSessionRegistry`, une par app, sur
`app.state.host_sessions`) avec une durée de vie `HOST_SESSION_TTL_SECONDS`.

Comportement & codes retour
---------------------------
- 401 si aucune authentification (ni cookie valide, ni Bearer).
- 403 si Bearer fourni mais invalide.
- True sinon.

Les préflights OPTIONS sont gérés par le middleware CORS : la protection se pose
route par route, jamais sur le router entier.
"""
from __future__ import annotations

import time
from threading import RLock
from typing import Dict, Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from murder_game.services.game_engine import GameEngine

HOST_COOKIE_NAME = "host_session"


class HostSessionRegistry:
    """Sessions hôte {sid: expiration epoch}."""

    def __init__(self, ttl_seconds: int) -> None:
        self.ttl_seconds = ttl_seconds
        self._lock = RLock()
        self._sessions: Dict[str, float] = {}

    def create(self) -> str:
        sid = uuid4().hex
        with self._lock:
            self._sessions[sid] = time.time() + self.ttl_seconds
        return sid

    def delete(self, sid: Optional[str]) -> None:
        if not sid:
            return
        with self._lock:
            self._sessions.pop(sid, None)

    def is_valid(self, sid: Optional[str]) -> bool:
        """True si `sid` existe et n'a pas expiré ; une session expirée est purgée."""
        if not sid:
            return False
        with self._lock:
            exp = self._sessions.get(sid)
            if exp is None:
                return False
            if exp < time.time():
                self._sessions.pop(sid, None)
                return False
            return True


def get_engine(request: Request) -> GameEngine:
    return request.app.state.engine


def get_host_sessions(request: Request) -> HostSessionRegistry:
    return request.app.state.host_sessions


# Schéma Bearer (auto_error=False pour rendre nos propres 401/403)
bearer = HTTPBearer(auto_error=False)


def _cookie_valid(request: Request) -> bool:
    return get_host_sessions(request).is_valid(request.cookies.get(HOST_COOKIE_NAME))


def host_required(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> bool:
    """
    Dépendance d'accès hôte.

    Autorise si:
    - Cookie de session hôte valide (HttpOnly), OU
    - Authorization: Bearer <settings.HOST_TOKEN>
    """
    if _cookie_valid(request):
        return True

    if credentials and (credentials.scheme or "").lower() == "bearer":
        if credentials.credentials == request.app.state.settings.HOST_TOKEN:
            return True
        raise HTTPException(status_code=403, detail="Invalid token")

    raise HTTPException(status_code=401, detail="Host authentication required")


def optional_host(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> bool:
    """Comme `host_required` mais sans lever : False pour un visiteur non authentifié."""
    if _cookie_valid(request):
        return True
    return bool(
        credentials
        and (credentials.scheme or "").lower() == "bearer"
        and credentials.credentials == request.app.state.settings.HOST_TOKEN
    )
