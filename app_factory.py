# Imports from standard library or third-party packages
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Imports from this project
from config import CORS_ORIGINS, LOG_LEVEL
from database import ensure_indexes, get_mongo_db
from errors import register_exception_handlers
from routers import (
    auth,
    emergency,
    feedback,
    industries,
    polls,
    updates,
    workshops,
)

logger = logging.getLogger(__name__)


def create_app(init_db: bool = True):
    """Crée et configure l'instance de l'application FastAPI."""
    logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(levelname)s - %(message)s')

    app = FastAPI(
        title="Federation API",
        description="API du site de la fédération : industries, actualités, sondages, ateliers et feedback",
        version="1.0.0"
    )

    # Événements de démarrage
    if init_db:
        @app.on_event("startup")
        def on_startup():
            ensure_indexes(get_mongo_db())

    # Configuration CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Inclusion des routeurs
    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(industries.router, prefix="/api/industries", tags=["Industries"])
    app.include_router(updates.router, prefix="/api/updates", tags=["Updates"])
    app.include_router(emergency.router, prefix="/api/emergency", tags=["Emergency contacts"])
    app.include_router(polls.router, prefix="/api/polls", tags=["Polls"])
    app.include_router(workshops.router, prefix="/api/workshops", tags=["Workshops"])
    app.include_router(feedback.router, prefix="/api/feedback", tags=["Feedback"])

    @app.get("/", tags=["Root"])
    def read_root():
        return {"message": "Federation backend is running"}

    logger.info("Application initialisée")
    return app
