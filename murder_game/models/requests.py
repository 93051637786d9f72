"""
Models / requests.py
Rôle:
- Corps de requêtes JSON acceptés par l'API (clés camelCase côté front).
- Résoudre à la frontière les deux formes de roster de POST /game/start :
  `players` (objets complets) ou `playerNames` (legacy, simples chaînes),
  en une seule liste canonique de `RosterEntry`.
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from murder_game.services.errors import ValidationError


class CamelModel(BaseModel):
    """Accepte `gameCode` comme `game_code` (alias camelCase + noms Python)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RosterEntry(BaseModel):
    """Forme canonique d'un joueur à créer, quelle que soit la forme d'entrée."""
    name: str
    username: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class PlayerInput(CamelModel):
    name: str
    username: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class SettingsOverrides(CamelModel):
    """Surcharges partielles des règles (tout est optionnel)."""
    murderer_count: Optional[int] = Field(None, ge=1)
    cooldown_minutes: Optional[float] = Field(None, ge=0)
    max_players: Optional[int] = Field(None, ge=1)
    min_players: Optional[int] = Field(None, ge=1)
    win_threshold: Optional[int] = Field(None, ge=0)
    theme: Optional[str] = None


class StartGameRequest(CamelModel):
    players: Optional[List[PlayerInput]] = None
    player_names: Optional[List[str]] = None
    settings: Optional[SettingsOverrides] = None
    host_display_name: Optional[str] = None
    game_code: Optional[str] = None

    def roster(self) -> List[RosterEntry]:
        """
        Convertit `players` / `playerNames` en `RosterEntry`.
        - `players` est prioritaire ; chaque joueur doit avoir un nom non vide.
        - `playerNames` : noms vides ignorés, pseudo généré `Player<n>`.
        """
        if self.players is not None:
            if any(not p.name.strip() for p in self.players):
                raise ValidationError("All players must have a name")
            return [
                RosterEntry(
                    name=p.name.strip(),
                    username=(p.username or "").strip() or None,
                    phone=p.phone or None,
                    email=p.email or None,
                )
                for p in self.players
            ]
        if self.player_names is not None:
            names = [n.strip() for n in self.player_names if n and n.strip()]
            return [RosterEntry(name=n, username=f"Player{i + 1}") for i, n in enumerate(names)]
        raise ValidationError("Either players or playerNames must be provided")


class KillRequest(CamelModel):
    """Champs optionnels : la route renvoie un 400 lisible si l'un manque."""
    game_code: Optional[str] = None
    murderer_code: Optional[str] = None
    victim_code: Optional[str] = None


class VoteRequest(CamelModel):
    game_code: Optional[str] = None
    voter_code: str
    target_code: str


class EliminateRequest(CamelModel):
    game_code: Optional[str] = None
    target_code: Optional[str] = None  # None => joueur en tête du dépouillement


class HostLogin(BaseModel):
    username: str
    password: str
