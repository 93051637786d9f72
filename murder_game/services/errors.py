"""
Service: errors.py
Erreurs "infrastructure / validation" levées par les services.

Les refus métier (kill illégal, partie terminée...) ne passent PAS par ici :
ils sont renvoyés comme résultats `success=False` par le moteur.
Chaque erreur porte le `status_code` HTTP que les routes doivent renvoyer.
"""
from __future__ import annotations


class GameError(RuntimeError):
    """Erreur de base du jeu (message lisible + code HTTP)."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(GameError):
    """Entrée invalide (roster vide, noms dupliqués, paramètres incohérents...)."""

    status_code = 400


class ConflictError(GameError):
    """Une partie active existe déjà pour ce gameCode."""

    status_code = 400


class NotFoundError(GameError):
    """Partie ou joueur introuvable."""

    status_code = 404


class StoreUnavailableError(GameError):
    """Stockage des sessions indisponible (disque en erreur, JSON corrompu...)."""

    status_code = 503
