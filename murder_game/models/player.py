"""
Models / player.py
Rôle:
- Définir la structure d'un joueur dans une partie (rôle caché + statut public).

Champs:
- player_code: identifiant non devinable, sert aussi de "clé" d'accès à la vue joueur.
- name / username: nom d'affichage et pseudo (le pseudo est optionnel en mode legacy).
- role: "murderer" ou "civilian", attribué une seule fois à la création.
- is_alive: statut public (visible de tous).
- last_kill_at / kills: suivi du cooldown et des stats d'un meurtrier.
- eliminated_by: "kill" ou "vote" une fois mort.
"""
from __future__ import annotations

import time
from typing import Literal, Optional

from pydantic import BaseModel, Field

Role = Literal["murderer", "civilian"]

ROLE_MURDERER: Role = "murderer"
ROLE_CIVILIAN: Role = "civilian"


class Player(BaseModel):
    """Joueur d'une partie (appartient exclusivement à sa GameSession)."""
    player_code: str
    name: str
    username: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    role: Role = ROLE_CIVILIAN
    is_alive: bool = True
    is_host: bool = False
    joined_at: float = Field(default_factory=time.time)
    last_kill_at: Optional[float] = None
    kills: int = 0
    eliminated_by: Optional[Literal["kill", "vote"]] = None

    @property
    def is_murderer(self) -> bool:
        return self.role == ROLE_MURDERER
