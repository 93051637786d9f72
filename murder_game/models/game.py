"""
Models / game.py
Rôle:
- Définir l'état typé d'une partie (session, réglages, journal des éliminations).
- Ce modèle est ce que le `SessionStore` garde en mémoire et persiste en JSON.

Champs (GameSession):
- game_code: identifiant saisi par l'hôte (unique parmi les parties vivantes).
- players: roster ordonné (ordre d'inscription conservé).
- settings: règles de la partie (nombre de meurtriers, cooldown, seuil de victoire...).
- status: "lobby" -> "active" -> "ended".
- kill_events: journal append-only des éliminations (kill ou vote).
- votes: bulletins courants {voter_code: target_code}.
- sequence: compteur monotone incrémenté à chaque mutation diffusée.

Notes:
- Les horodatages sont des epoch en secondes (float), convertis en ms par le sérialiseur.
"""
from __future__ import annotations

import time
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from murder_game.models.player import Player

GameStatus = Literal["lobby", "active", "ended"]
Winner = Literal["murderers", "civilians"]
EliminationKind = Literal["kill", "vote"]

STATUS_LOBBY: GameStatus = "lobby"
STATUS_ACTIVE: GameStatus = "active"
STATUS_ENDED: GameStatus = "ended"


class GameSettings(BaseModel):
    """Règles d'une partie (valeurs par défaut complétées depuis `Settings`)."""
    murderer_count: int = Field(1, ge=1)
    cooldown_minutes: float = Field(10, ge=0)  # 0 = pas de cooldown entre deux kills
    max_players: int = Field(20, ge=1)
    min_players: int = Field(3, ge=1)
    # Les meurtriers gagnent quand civils vivants <= win_threshold.
    # None => seuil = nombre de meurtriers encore vivants (parité).
    win_threshold: Optional[int] = Field(None, ge=0)
    theme: str = "christmas"


class KillEvent(BaseModel):
    """Entrée du journal des éliminations."""
    event_id: str
    kind: EliminationKind = "kill"
    murderer_code: Optional[str] = None  # None pour une élimination par vote
    murderer_name: Optional[str] = None
    victim_code: str
    victim_name: str
    timestamp: float = Field(default_factory=time.time)
    message: str = ""


class GameSession(BaseModel):
    """État complet d'une partie, côté serveur (jamais renvoyé tel quel aux clients)."""
    game_code: str
    players: List[Player] = Field(default_factory=list)
    settings: GameSettings = Field(default_factory=GameSettings)
    status: GameStatus = STATUS_LOBBY
    host_display_name: str = "Host"
    created_at: float = Field(default_factory=time.time)
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    winner: Optional[Winner] = None
    kill_events: List[KillEvent] = Field(default_factory=list)
    votes: Dict[str, str] = Field(default_factory=dict)
    sequence: int = 0

    def player(self, player_code: Optional[str]) -> Optional[Player]:
        """Retourne le joueur de code `player_code` (ou None)."""
        if not player_code:
            return None
        for p in self.players:
            if p.player_code == player_code:
                return p
        return None

    def alive_players(self) -> List[Player]:
        return [p for p in self.players if p.is_alive]

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE
