"""
Models / results.py
Résultats "métier" renvoyés par le moteur : un refus de règle n'est pas une
exception mais un `success=False` accompagné d'une raison lisible.

Raisons possibles (`reason`):
- InvalidState  : partie absente ou terminée
- Unauthorized  : l'acteur n'a pas le droit d'agir (pas meurtrier, mort, inconnu)
- InvalidTarget : cible inconnue, morte, ou soi-même
- Cooldown      : délai entre deux kills non écoulé
- AlreadyVoted  : un seul vote par joueur
- NoVotes       : élimination demandée sans cible ni bulletin
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from murder_game.models.requests import CamelModel

INVALID_STATE = "InvalidState"
UNAUTHORIZED = "Unauthorized"
INVALID_TARGET = "InvalidTarget"
COOLDOWN = "Cooldown"
ALREADY_VOTED = "AlreadyVoted"
NO_VOTES = "NoVotes"


class ActionResult(CamelModel):
    success: bool
    message: str
    reason: Optional[str] = None
    state_delta: Optional[Dict[str, Any]] = None

    @classmethod
    def fail(cls, reason: str, message: str, **extra: Any):
        return cls(success=False, reason=reason, message=message, **extra)

    def to_response(self) -> Dict[str, Any]:
        """Dict camelCase sans les champs vides (fusionné dans la réponse HTTP)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class KillAttemptResult(ActionResult):
    kill_event: Optional[Dict[str, Any]] = None
    cooldown_remaining: Optional[int] = None
