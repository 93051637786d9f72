"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres de l'app (nom, host/port, secrets hôte, chemins, règles par défaut).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from murder_game.config.settings import settings`,
  ou reçoivent une instance explicite via `create_app(settings=...)` (tests).

Bonnes pratiques
----------------
- *Ne commitez pas* une valeur réelle de `HOST_TOKEN`. Utilisez `.env`.
- `BASE_URL` sert à fabriquer les liens joueurs (`<BASE_URL>/game/play/<playerCode>`).
- `DATA_DIR` calcule un chemin relatif au package : `<repo>/murder_game/data`.

Exemples de `.env`
------------------
APP_NAME="Murder Game Backend (Staging)"
PORT=8080
HOST_TOKEN="mettre-une-valeur-secrète-en-prod"
BASE_URL="https://murder.example.org"
PERSIST_SESSIONS=true
DEFAULT_COOLDOWN_MINUTES=5
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Murder Game Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Jeton hôte utilisé par la dépendance `host_required` (Bearer)
    # ⚠️ Remplacez en production via .env
    HOST_TOKEN: str = "changeme-super-secret"
    # Identifiants de l'écran de login hôte (cookie HttpOnly)
    HOST_USER: str = "host"
    HOST_PASSWORD: str = "changeme"
    HOST_SESSION_TTL_SECONDS: int = 12 * 3600
    # Surface de login vers laquelle on redirige un hôte non authentifié
    LOGIN_PATH: str = "/auth/host/login"

    # Base des liens joueurs distribués hors-bande
    BASE_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Persistance JSON des sessions (désactivable pour un mode 100% mémoire)
    PERSIST_SESSIONS: bool = True
    DATA_DIR: str = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")

    # Code de partie utilisé quand le front n'en fournit pas
    DEFAULT_GAME_CODE: str = "GAME_MAIN"

    # Règles par défaut d'une partie (surchargées par `settings` dans POST /game/start)
    DEFAULT_MURDERER_COUNT: int = 1
    DEFAULT_COOLDOWN_MINUTES: int = 10
    DEFAULT_MAX_PLAYERS: int = 20
    DEFAULT_MIN_PLAYERS: int = 3

    # Délai max d'un envoi WS avant de considérer l'abonné comme mort (secondes)
    WS_SEND_TIMEOUT: float = 2.0

    # Paramétrage pydantic-settings :
    # - lit le fichier .env (UTF-8) si présent
    # - ignore les clés supplémentaires pour éviter les erreurs
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()
