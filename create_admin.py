"""
Crée (ou remet à niveau) un compte administrateur dans la base configurée.

Usage : python create_admin.py <username> <email> <password>
"""
import sys

import pymongo
from dotenv import load_dotenv

load_dotenv()

from config import MEMBERSHIP_MONTHS  # noqa: E402
from database import ensure_indexes, get_mongo_db, mongo_client  # noqa: E402
from dependencies import hash_password  # noqa: E402
from utils.dates import add_months, utcnow  # noqa: E402


def create_admin_user(username: str, email: str, password: str):
    """
    Se connecte à MongoDB, vérifie si l'admin existe déjà,
    et le crée ou le met à jour si nécessaire.
    """
    db = get_mongo_db()
    ensure_indexes(db)
    users_collection = db["users"]

    now = utcnow()
    fields = {
        "password": hash_password(password),
        "role": "admin",
        "status": "active",
        "expiryDate": add_months(now, MEMBERSHIP_MONTHS),
    }

    if users_collection.find_one({"email": email}):
        print(f"L'utilisateur '{email}' existe déjà. Mise à jour du mot de passe, du rôle et du statut.")
        users_collection.update_one({"email": email}, {"$set": fields})
    else:
        print(f"Création de l'utilisateur admin '{email}'.")
        users_collection.insert_one(dict(fields, username=username, email=email, createdAt=now))
    print("Terminé.")


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    try:
        create_admin_user(*sys.argv[1:])
    except pymongo.errors.PyMongoError as e:
        print(f"Erreur MongoDB : {e}")
        sys.exit(1)
    finally:
        mongo_client.close()
