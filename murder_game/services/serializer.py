"""
Service: serializer.py
Projection "lecture" d'une partie, caviardée selon l'observateur.

Observateurs:
- HOST_VIEWER  : l'hôte voit tout (rôles de chacun, auteur de chaque kill).
- PUBLIC_VIEWER (None) : écran de statut / landing → aucun rôle, aucun auteur de kill.
- <player_code> : le joueur voit SON rôle, le statut public des autres, et un bloc
  `playerData` (cooldown + cibles disponibles s'il est meurtrier vivant).

Règle d'or: une vue non-hôte ne contient jamais le champ `role` d'un autre joueur.

Absence de partie: `serialize(None, ...)` renvoie `EMPTY_STATE` (exists=False),
distinct d'une erreur, pour que les pages puissent afficher une vue par défaut.
"""
from __future__ import annotations

import copy
import time
from typing import Any, Dict, List, Optional

from murder_game.models.game import GameSession, KillEvent
from murder_game.models.player import Player
from murder_game.services.game_rules import alive_counts, cooldown_status

HOST_VIEWER = "__host__"
PUBLIC_VIEWER: Optional[str] = None

EMPTY_STATE: Dict[str, Any] = {
    "exists": False,
    "id": None,
    "gameCode": None,
    "status": None,
    "isActive": False,
    "winner": None,
    "players": [],
    "killEvents": [],
    "stats": None,
    "settings": None,
    "sequence": 0,
    "viewer": "public",
    "playerData": None,
}


def _ms(ts: Optional[float]) -> Optional[int]:
    return int(ts * 1000) if ts is not None else None


def _public_player(p: Player) -> Dict[str, Any]:
    return {"id": p.player_code, "name": p.name, "isAlive": p.is_alive, "isHost": p.is_host}


def _full_player(p: Player) -> Dict[str, Any]:
    data = _public_player(p)
    data.update(
        {
            "username": p.username,
            "role": p.role,
            "kills": p.kills,
            "lastKillTime": _ms(p.last_kill_at),
            "joinedAt": _ms(p.joined_at),
            "eliminatedBy": p.eliminated_by,
        }
    )
    return data


def _kill_event_view(ev: KillEvent, full: bool) -> Dict[str, Any]:
    data = {
        "id": ev.event_id,
        "kind": ev.kind,
        "victim": ev.victim_name,
        "victimCode": ev.victim_code,
        "timestamp": _ms(ev.timestamp),
        "successful": True,
    }
    if full:
        data["murderer"] = ev.murderer_name
        data["murdererCode"] = ev.murderer_code
        data["message"] = ev.message
    elif ev.kind == "vote":
        data["message"] = f"{ev.victim_name} was voted out"
    else:
        data["message"] = f"{ev.victim_name} was eliminated"
    return data


def compute_stats(session: GameSession, now: Optional[float] = None) -> Dict[str, Any]:
    now = time.time() if now is None else now
    counts = alive_counts(session.players)
    alive = counts["murderers"] + counts["civilians"]
    duration = None
    if session.started_at is not None:
        duration = _ms((session.ended_at or now) - session.started_at)
    return {
        "totalPlayers": len(session.players),
        "alivePlayers": alive,
        "deadPlayers": len(session.players) - alive,
        "murderers": counts["murderers"],
        "civilians": counts["civilians"],
        "totalKills": len(session.kill_events),
        "gameStarted": session.started_at is not None,
        "gameEnded": session.status == "ended",
        "duration": duration,
    }


def player_data(session: GameSession, player: Player, now: Optional[float] = None) -> Dict[str, Any]:
    """Bloc privé d'un joueur: lui-même (avec rôle), cooldown, cibles possibles."""
    targets: List[Dict[str, Any]] = []
    if session.is_active and player.is_murderer and player.is_alive:
        targets = [
            _public_player(p)
            for p in session.players
            if p.is_alive and p.player_code != player.player_code
        ]
    return {
        "player": _full_player(player),
        "cooldownStatus": cooldown_status(player, session.settings, now),
        "availableTargets": targets,
    }


def serialize(
    session: Optional[GameSession],
    viewer: Optional[str] = PUBLIC_VIEWER,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """Rend l'état de `session` pour `viewer` (HOST_VIEWER, PUBLIC_VIEWER ou un player_code)."""
    if session is None:
        return copy.deepcopy(EMPTY_STATE)

    is_host = viewer == HOST_VIEWER
    me = None if is_host else session.player(viewer)

    players: List[Dict[str, Any]] = []
    for p in session.players:
        if is_host or (me is not None and p.player_code == me.player_code):
            players.append(_full_player(p))
        else:
            players.append(_public_player(p))

    s = session.settings
    return {
        "exists": True,
        "id": session.game_code,
        "gameCode": session.game_code,
        "status": session.status,
        "isActive": session.is_active,
        "winner": session.winner,
        "hostDisplayName": session.host_display_name,
        "players": players,
        "createdAt": _ms(session.created_at),
        "startTime": _ms(session.started_at),
        "endTime": _ms(session.ended_at),
        "killEvents": [_kill_event_view(ev, is_host) for ev in session.kill_events],
        "settings": {
            "murdererCount": s.murderer_count,
            "cooldownMinutes": s.cooldown_minutes,
            "maxPlayers": s.max_players,
            "minPlayers": s.min_players,
            "winThreshold": s.win_threshold,
            "theme": s.theme,
        },
        "stats": compute_stats(session, now),
        "sequence": session.sequence,
        "viewer": "host" if is_host else ("player" if me is not None else "public"),
        "playerData": player_data(session, me, now) if me is not None else None,
    }
