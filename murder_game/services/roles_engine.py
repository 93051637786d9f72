# murder_game/services/roles_engine.py
"""
Service: roles_engine.py
- Génère les codes joueurs/événements (alphabet sans caractères ambigus).
- Valide un roster avant création de partie (taille, doublons, nombre de meurtriers).
- Assigne "murderer"/"civilian" par tirage uniforme sans remise.

Le tirage utilise `random.SystemRandom` par défaut ; les tests injectent un
`random.Random(seed)` pour rendre l'attribution reproductible.
"""
from __future__ import annotations

import random
import secrets
from typing import Iterable, List, Optional, Set

from murder_game.models.game import GameSettings
from murder_game.models.player import Player, ROLE_CIVILIAN, ROLE_MURDERER
from murder_game.models.requests import RosterEntry
from murder_game.services.errors import ValidationError

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PLAYER_CODE_LENGTH = 8

_SYSTEM_RANDOM = random.SystemRandom()


def generate_code(prefix: str, length: int = 6) -> str:
    """Code `PREFIX_XXXXXX` tiré avec `secrets` (non devinable)."""
    token = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}_{token}"


def validate_roster(roster: List[RosterEntry], game_settings: GameSettings) -> None:
    """Lève `ValidationError` si le roster ne permet pas de lancer la partie."""
    count = len(roster)
    if count < game_settings.min_players:
        raise ValidationError(f"At least {game_settings.min_players} players are required to start a game")
    if count > game_settings.max_players:
        raise ValidationError(f"Maximum {game_settings.max_players} players allowed")

    seen: Set[str] = set()
    for entry in roster:
        key = entry.name.strip().lower()
        if not key:
            raise ValidationError("Player names cannot be empty")
        if key in seen:
            raise ValidationError("Player names must be unique")
        seen.add(key)

    if game_settings.murderer_count >= count:
        raise ValidationError(
            f"Cannot assign {game_settings.murderer_count} murderers to {count} players. "
            "At least one civilian is required."
        )


def build_players(roster: Iterable[RosterEntry]) -> List[Player]:
    """Crée les `Player` (tous civils, vivants) avec des codes uniques dans la partie."""
    players: List[Player] = []
    used: Set[str] = set()
    for entry in roster:
        code = generate_code("PLAYER", PLAYER_CODE_LENGTH)
        while code in used:
            code = generate_code("PLAYER", PLAYER_CODE_LENGTH)
        used.add(code)
        players.append(
            Player(
                player_code=code,
                name=entry.name,
                username=entry.username,
                phone=entry.phone,
                email=entry.email,
            )
        )
    return players


def assign_roles(
    players: List[Player],
    murderer_count: int,
    rng: Optional[random.Random] = None,
) -> List[Player]:
    """
    Assigne les rôles en place et renvoie la liste (ordre du roster conservé).
    - `murderer_count` joueurs distincts tirés uniformément deviennent "murderer".
    - Tous les autres sont "civilian" : aucun joueur ne reste sans rôle.
    """
    if murderer_count < 1:
        raise ValidationError("Must have at least 1 murderer")
    if murderer_count > len(players):
        raise ValidationError(
            f"Cannot assign {murderer_count} murderers to {len(players)} players."
        )

    draw = rng or _SYSTEM_RANDOM
    chosen = set(draw.sample(range(len(players)), murderer_count))
    for idx, player in enumerate(players):
        player.role = ROLE_MURDERER if idx in chosen else ROLE_CIVILIAN
    return players
