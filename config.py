# config.py
"""
Fichier de configuration centralisée pour le backend de la fédération.
Les valeurs sont lues depuis l'environnement (fichier .env chargé dans main.py).
"""
import os

# --- Base de données ---
MONGO_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/")
DB_NAME = os.getenv("DB_NAME", "federation")

# Configuration de la sécurité JWT (JSON Web Token)
SECRET_KEY = os.getenv("JWT_SECRET", "change_me_federation_jwt_secret")  # IMPORTANT: à définir en production
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))
BOOTSTRAP_TOKEN_EXPIRE_MINUTES = int(os.getenv("BOOTSTRAP_TOKEN_EXPIRE_MINUTES", "60"))

# Durée de validité d'un compte à l'inscription (en mois)
MEMBERSHIP_MONTHS = int(os.getenv("MEMBERSHIP_MONTHS", "3"))

# --- Stockage des images (Cloudinary) ---
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY", "")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET", "")
UPLOAD_TIMEOUT = int(os.getenv("UPLOAD_TIMEOUT", "30"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
