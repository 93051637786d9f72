# murder_game/routes/websocket.py
"""
WebSocket endpoint d'une partie.

- /ws/game/{game_code}?playerCode=... : abonne le socket aux événements de la partie.
  Viewer: hôte (cookie `host_session` ou ?token=<HOST_TOKEN>), joueur (playerCode),
  sinon public.
- Messages entrants:
    {"type": "ping"}                                   -> {"type": "pong"}
    {"type": "request-game-state"}                     -> {"type": "game-state", "state": ...}
    {"type": "kill-attempt", "victimCode": "..."}      -> {"type": "kill-attempt-result", ...}
  Tout autre type reçoit {"type": "error"} ; un message non JSON est ignoré.
- Les accès au store (verrou de session, écriture disque) passent par un
  thread worker anyio : la boucle n'attend jamais un verrou.
- Les événements de partie (game-started, player-killed, game-ended, ...) sont
  poussés par `GameBroadcaster.publish()`.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import anyio.to_thread
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from murder_game.deps.auth import HOST_COOKIE_NAME
from murder_game.services.serializer import HOST_VIEWER, PUBLIC_VIEWER, serialize

logger = logging.getLogger(__name__)

router = APIRouter()


def _resolve_viewer(ws: WebSocket, game_code: str) -> Optional[str]:
    """HOST_VIEWER, un player_code connu de la partie, ou PUBLIC_VIEWER."""
    app_state = ws.app.state
    token = ws.query_params.get("token")
    if app_state.host_sessions.is_valid(ws.cookies.get(HOST_COOKIE_NAME)):
        return HOST_VIEWER
    if token and token == app_state.settings.HOST_TOKEN:
        return HOST_VIEWER

    pid = (ws.query_params.get("playerCode") or "").strip()
    if pid:
        session = app_state.engine.store.peek(game_code)
        if session is not None and session.player(pid) is not None:
            return pid
    return PUBLIC_VIEWER


async def _read_state(engine: Any, game_code: str, viewer: Optional[str]) -> Dict[str, Any]:
    """Snapshot lu hors de la boucle (verrou de session + disque éventuel)."""
    session = await anyio.to_thread.run_sync(engine.store.peek, game_code)
    return serialize(session, viewer)


@router.websocket("/ws/game/{game_code}")
async def game_socket(ws: WebSocket, game_code: str):
    engine = ws.app.state.engine
    broadcaster = engine.broadcaster
    await broadcaster.connect(ws)

    viewer = await anyio.to_thread.run_sync(_resolve_viewer, ws, game_code)
    broadcaster.subscribe(game_code, ws, viewer)
    logger.info(
        "Websocket subscribed",
        extra={"game_code": game_code, "viewer": "host" if viewer == HOST_VIEWER else ("player" if viewer else "public")},
    )
    await broadcaster.send_json(
        ws,
        {"type": "connected", "gameCode": game_code, "state": await _read_state(engine, game_code, viewer)},
    )

    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg: Dict[str, Any] = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(msg, dict):
                continue

            mtype = msg.get("type")
            if mtype == "ping":
                await broadcaster.send_json(ws, {"type": "pong"})
            elif mtype == "request-game-state":
                state = await _read_state(engine, game_code, viewer)
                await broadcaster.send_json(ws, {"type": "game-state", "gameCode": game_code, "state": state})
            elif mtype == "kill-attempt":
                payload = msg.get("payload") or msg
                if not isinstance(payload, dict):
                    await broadcaster.send_json(ws, {"type": "error", "error": "kill-attempt payload must be an object"})
                    continue
                murderer = payload.get("murdererCode") or (viewer if viewer not in (HOST_VIEWER, PUBLIC_VIEWER) else None)
                victim = payload.get("victimCode")
                if not (murderer and victim):
                    await broadcaster.send_json(
                        ws, {"type": "error", "error": "kill-attempt requires murdererCode and victimCode"}
                    )
                    continue
                result = await anyio.to_thread.run_sync(engine.record_kill_attempt, game_code, murderer, victim)
                await broadcaster.send_json(ws, {"type": "kill-attempt-result", **result.to_response()})
            else:
                await broadcaster.send_json(ws, {"type": "error", "error": f"unknown message type: {mtype}"})
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(ws)
