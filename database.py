# Base de données: configuration de la connexion MongoDB et des index.

import logging

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import MONGO_URI, DB_NAME

logger = logging.getLogger(__name__)

# Créer le client une seule fois pour être réutilisé à travers l'application
mongo_client = MongoClient(MONGO_URI, connect=False)


def get_mongo_db() -> Database:
    """
    Retourne une instance de la base de données MongoDB.
    Utilisée comme dépendance FastAPI (surchargée dans les tests).
    """
    return mongo_client[DB_NAME]


def ensure_indexes(db: Database):
    """Crée les index uniques sur lesquels reposent les contrôles de doublons."""
    db.users.create_index([("email", ASCENDING)], unique=True)
    db.users.create_index([("username", ASCENDING)], unique=True)
    db.industries.create_index([("name", ASCENDING)], unique=True)
    # Une seule réponse par (question, utilisateur)
    db.feedback_responses.create_index(
        [("feedbackId", ASCENDING), ("createdBy", ASCENDING)], unique=True
    )
    logger.info("Index MongoDB vérifiés sur la base '%s'", db.name)
