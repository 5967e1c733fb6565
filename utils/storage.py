"""
Collaborateur de stockage d'images.

Les fichiers reçus sont envoyés à l'API d'upload de Cloudinary ; seule l'URL
publique renvoyée est conservée dans les documents MongoDB.
"""
import hashlib
import logging
import time

import requests
from fastapi import UploadFile

from config import (
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_CLOUD_NAME,
    UPLOAD_TIMEOUT,
)

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


class StorageError(Exception):
    """Échec de l'envoi d'un fichier vers le stockage objet."""


def _signature(params: dict) -> str:
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{CLOUDINARY_API_SECRET}".encode("utf-8")).hexdigest()


def upload_image(file: UploadFile, folder: str = "federation") -> str:
    """Téléverse une image et retourne son URL sécurisée (secure_url)."""
    if not CLOUDINARY_CLOUD_NAME or not CLOUDINARY_API_KEY:
        raise StorageError("Cloudinary n'est pas configuré")

    params = {"folder": folder, "timestamp": int(time.time())}
    data = dict(params, api_key=CLOUDINARY_API_KEY, signature=_signature(params))
    url = UPLOAD_URL.format(cloud_name=CLOUDINARY_CLOUD_NAME)
    try:
        response = requests.post(
            url,
            data=data,
            files={"file": (file.filename, file.file, file.content_type)},
            timeout=UPLOAD_TIMEOUT,
        )
        response.raise_for_status()
        secure_url = response.json().get("secure_url")
    except (requests.exceptions.RequestException, ValueError) as e:
        raise StorageError(f"Upload de '{file.filename}' impossible: {e}") from e
    finally:
        file.file.close()

    if not secure_url:
        raise StorageError(f"Réponse Cloudinary sans secure_url pour '{file.filename}'")
    logger.info("Image '%s' téléversée: %s", file.filename, secure_url)
    return secure_url
