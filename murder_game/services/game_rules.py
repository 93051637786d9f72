"""
Service: game_rules.py
Fonctions pures de règles : comptages, évaluation de fin de partie, cooldown de kill.

Politique de victoire:
- Les civils gagnent dès qu'aucun meurtrier n'est vivant.
- Les meurtriers gagnent quand civils vivants <= seuil, avec
  seuil = `settings.win_threshold` s'il est fixé, sinon le nombre de meurtriers vivants.
"""
from __future__ import annotations

import math
import time
from typing import Any, Dict, Iterable, Optional

from murder_game.models.game import GameSettings, Winner
from murder_game.models.player import Player


def alive_counts(players: Iterable[Player]) -> Dict[str, int]:
    murderers = 0
    civilians = 0
    for p in players:
        if not p.is_alive:
            continue
        if p.is_murderer:
            murderers += 1
        else:
            civilians += 1
    return {"murderers": murderers, "civilians": civilians}


def evaluate_winner(players: Iterable[Player], game_settings: GameSettings) -> Optional[Winner]:
    """Retourne le camp gagnant, ou None si la partie continue."""
    counts = alive_counts(players)
    if counts["murderers"] == 0:
        return "civilians"
    threshold = game_settings.win_threshold
    if threshold is None:
        threshold = counts["murderers"]
    if counts["civilians"] <= threshold:
        return "murderers"
    return None


def cooldown_status(
    player: Player,
    game_settings: GameSettings,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """
    État du cooldown de kill d'un joueur.
    Renvoie {canKill, remainingSeconds, remainingMinutes, lastKillTime(ms|None)}.
    """
    now = time.time() if now is None else now
    if player.last_kill_at is None:
        return {"canKill": True, "remainingSeconds": 0, "remainingMinutes": 0, "lastKillTime": None}

    cooldown_s = max(game_settings.cooldown_minutes, 0) * 60
    remaining = max(0.0, player.last_kill_at + cooldown_s - now)
    remaining_seconds = math.ceil(remaining)
    return {
        "canKill": remaining <= 0,
        "remainingSeconds": remaining_seconds,
        "remainingMinutes": math.ceil(remaining_seconds / 60),
        "lastKillTime": int(player.last_kill_at * 1000),
    }
