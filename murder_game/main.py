"""
Application FastAPI : point d'entrée
====================================

Rôle
----
- Construit l'app (`create_app`) : moteur de jeu, store de sessions, diffuseur
  temps réel et registre des sessions hôte, rangés sur `app.state`.
- Configure le logging, le CORS pour le front et les gestionnaires d'erreurs.
- Monte tous les routeurs (REST + WebSocket).

Notes
-----
- Aucun singleton global : chaque `create_app()` a son propre moteur, ce qui
  permet aux tests de monter une app isolée sur un `DATA_DIR` temporaire.
- Le middleware CORS est ajouté AVANT les include_router.
- Les protections hôte se posent route par route (préflights OPTIONS libres).
"""
import logging
import random
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from murder_game.config.settings import Settings, settings as default_settings
from murder_game.deps.auth import HostSessionRegistry
from murder_game.routes.auth_host import router as auth_host_router
from murder_game.routes.game import router as game_router
from murder_game.routes.health import router as health_router
from murder_game.routes.host import router as host_router
from murder_game.routes.public import router as public_router
from murder_game.routes.votes import router as votes_router
from murder_game.routes.websocket import router as ws_router
from murder_game.services.errors import GameError
from murder_game.services.game_engine import GameEngine
from murder_game.services.session_store import SessionStore
from murder_game.services.ws_manager import GameBroadcaster

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_engine(settings: Settings, rng: Optional[random.Random] = None) -> GameEngine:
    store = SessionStore(settings.DATA_DIR if settings.PERSIST_SESSIONS else None)
    broadcaster = GameBroadcaster(send_timeout=settings.WS_SEND_TIMEOUT)
    return GameEngine(store, broadcaster, settings, rng=rng)


def create_app(settings: Optional[Settings] = None, engine: Optional[GameEngine] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Liste les routes montées au démarrage ; ferme les sockets à l'arrêt."""
        logger.info(
            "App started",
            extra={"persist": settings.PERSIST_SESSIONS, "data_dir": settings.DATA_DIR},
        )
        for r in app.routes:
            methods = getattr(r, "methods", None)
            logger.debug("Route %s %s", getattr(r, "path", "?"), sorted(methods) if methods else "WS")
        yield
        await app.state.engine.broadcaster.close_all()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine or build_engine(settings)
    app.state.host_sessions = HostSessionRegistry(settings.HOST_SESSION_TTL_SECONDS)

    # ===========================
    # CORS
    # ===========================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,          # cookie host_session
        allow_methods=["*"],
        allow_headers=["*"],             # dont Authorization
    )

    # ===========================
    # Erreurs
    # ===========================
    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        logger.warning("Game error", extra={"path": request.url.path, "error": exc.message})
        return JSONResponse({"success": False, "error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid request')}" if field else first.get("msg", "Invalid request")
        logger.info("Request rejected", extra={"path": request.url.path, "error": message})
        return JSONResponse({"success": False, "error": message}, status_code=400)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return JSONResponse({"success": False, "error": "Internal server error"}, status_code=500)

    # ===========================
    # Montage des routers
    # ===========================
    app.include_router(game_router)
    app.include_router(votes_router)
    app.include_router(host_router)
    app.include_router(auth_host_router)
    app.include_router(public_router)
    app.include_router(health_router)
    app.include_router(ws_router)                  # /ws/game/{game_code}

    @app.get("/")
    def root():
        """Ping basique : vérifie que l'app tourne."""
        return {"ok": True, "service": settings.APP_NAME}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("murder_game.main:app", host=default_settings.HOST, port=default_settings.PORT)
