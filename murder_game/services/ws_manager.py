# murder_game/services/ws_manager.py
"""
Service: ws_manager.py
- Registre game_code -> {socket: viewer} ET socket -> game_code (reverse map).
- Abonnement idempotent (déplacement du socket s'il change de partie/de viewer).
- Snapshots immuables pour éviter "dict changed size during iteration".
- publish(): fan-out "fire-and-forget" d'un état frais, caviardé par viewer.
- Chaque envoi est borné par `send_timeout` ; un socket lent ou mort est retiré.
- Admin: stats(), close_all().

Pas de journal de rejeu : un client qui rate un event se recale sur le suivant
(`sequence` permet de détecter le trou) ou redemande l'état.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, List, Optional, Set, Tuple

import anyio.from_thread

from murder_game.models.game import GameSession
from murder_game.services.serializer import HOST_VIEWER, serialize

logger = logging.getLogger(__name__)


@dataclass
class GameEvent:
    """Changement d'état diffusé aux abonnés d'une partie."""
    type: str
    game_code: str
    sequence: int
    payload: Dict[str, Any] = field(default_factory=dict)
    # complément réservé à l'hôte (ex: auteur d'un kill)
    host_payload: Dict[str, Any] = field(default_factory=dict)
    # snapshot post-mutation, rendu pour chaque viewer
    session: Optional[GameSession] = None


@dataclass
class GameBroadcaster:
    send_timeout: float = 2.0
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # game_code -> {socket: viewer}
    subscribers: Dict[str, Dict[Any, Optional[str]]] = field(default_factory=dict)
    # reverse map: socket -> game_code
    ws_to_game: Dict[Any, str] = field(default_factory=dict)
    _tasks: Set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    async def connect(self, ws: Any) -> None:
        await ws.accept()

    def subscribe(self, game_code: str, ws: Any, viewer: Optional[str]) -> None:
        """Associe un socket à une partie et un viewer (HOST_VIEWER, player_code ou None)."""
        with self._lock:
            self._unlink_nolock(ws)
            self.subscribers.setdefault(game_code, {})[ws] = viewer
            self.ws_to_game[ws] = game_code

    def _unlink_nolock(self, ws: Any) -> None:
        prev = self.ws_to_game.pop(ws, None)
        if prev is None:
            return
        bucket = self.subscribers.get(prev)
        if bucket is not None:
            bucket.pop(ws, None)
            if not bucket:
                self.subscribers.pop(prev, None)

    def unsubscribe(self, ws: Any) -> None:
        with self._lock:
            self._unlink_nolock(ws)

    async def disconnect(self, ws: Any) -> None:
        """Retire le socket des registres puis le ferme."""
        self.unsubscribe(ws)
        try:
            await ws.close()
        except Exception:
            pass

    # ---------- snapshots immuables ----------
    def _snapshot(self, game_code: str) -> List[Tuple[Any, Optional[str]]]:
        with self._lock:
            return list(self.subscribers.get(game_code, {}).items())

    # ---------- envois ----------
    async def send_json(self, ws: Any, payload: Any) -> bool:
        """Envoie à un socket; renvoie False (et le retire) en cas d'échec ou de lenteur."""
        try:
            data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
            await asyncio.wait_for(ws.send_text(data), timeout=self.send_timeout)
            return True
        except Exception:
            logger.info("Dropping websocket subscriber", extra={"game_code": self.ws_to_game.get(ws)})
            self.unsubscribe(ws)
            return False

    def render(self, event: GameEvent, viewer: Optional[str]) -> Dict[str, Any]:
        payload = dict(event.payload)
        if viewer == HOST_VIEWER:
            payload.update(event.host_payload)
        message: Dict[str, Any] = {
            "type": event.type,
            "gameCode": event.game_code,
            "sequence": event.sequence,
            "payload": payload,
        }
        if event.session is not None:
            message["state"] = serialize(event.session, viewer)
        return message

    async def fan_out(self, event: GameEvent) -> int:
        conns = self._snapshot(event.game_code)
        if not conns:
            return 0
        results = await asyncio.gather(
            *(self.send_json(ws, self.render(event, viewer)) for ws, viewer in conns)
        )
        success = sum(1 for ok in results if ok)
        logger.debug(
            "Event fan-out",
            extra={"game_code": event.game_code, "event_type": event.type, "delivered": success, "targets": len(conns)},
        )
        return success

    def _schedule(self, event: GameEvent) -> None:
        task = asyncio.get_running_loop().create_task(self.fan_out(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def publish(self, game_code: str, event: GameEvent) -> None:
        """
        Diffuse `event` à tous les abonnés de `game_code`, sans attendre les envois.
        - Dans la boucle : tâche planifiée.
        - Depuis un worker anyio (route sync) : planifiée via le portail anyio.
        - Sans boucle du tout (scripts) : envoi exécuté sur une boucle dédiée.
        """
        if event.game_code != game_code:
            event.game_code = game_code
        if not self._snapshot(game_code):
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._schedule(event)
            return
        try:
            anyio.from_thread.run_sync(self._schedule, event)
        except RuntimeError:
            asyncio.run(self.fan_out(event))

    # ---------- admin ----------
    def stats(self) -> dict:
        with self._lock:
            per_game = {code: len(conns) for code, conns in self.subscribers.items()}
            return {"games": per_game, "subscribers_total": sum(per_game.values())}

    async def close_all(self) -> dict:
        with self._lock:
            conns = list(self.ws_to_game.keys())
        for ws in conns:
            await self.disconnect(ws)
        return self.stats()
