"""
Stockage des médias uploadés (images de recettes, photos de profil, images de catégories, vidéos).

Les fichiers sont rangés par type de média (recipes/, profiles/, categories/, videos/)
dans le stockage par défaut : disque local servi sous /uploads/, ou S3 si configuré.
"""
import logging
import mimetypes
import os
import random
import time
from dataclasses import dataclass

from django.core.files.storage import default_storage

from .exceptions import MediaStorageError, ValidationFailed

logger = logging.getLogger(__name__)

MB = 1024 * 1024

IMAGE_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/webp')
VIDEO_TYPES = ('video/mp4', 'video/mpeg', 'video/quicktime', 'video/webm')


@dataclass(frozen=True)
class UploadRule:
    folder: str
    content_types: tuple
    max_size: int
    max_files: int
    type_error: str


RECIPE_IMAGES = UploadRule(
    'recipes', IMAGE_TYPES, 5 * MB, 5, 'Only image files (jpeg, png, webp) are allowed.',
)
PROFILE_IMAGE = UploadRule(
    'profiles', IMAGE_TYPES, 2 * MB, 1, 'Only image files (jpeg, png, webp) are allowed.',
)
CATEGORY_IMAGE = UploadRule(
    'categories', IMAGE_TYPES, 1 * MB, 1, 'Only image files (jpeg, png, webp) are allowed.',
)
RECIPE_VIDEO = UploadRule(
    'videos', VIDEO_TYPES, 50 * MB, 1, 'Only video files (mp4, mpeg, quicktime, webm) are allowed.',
)


def build_filename(field_name: str, original_name: str, content_type: str) -> str:
    """Nom unique : <champ>-<timestamp ms>-<aléatoire><extension>."""
    extension = os.path.splitext(original_name or '')[1].lower()
    if not extension:
        extension = mimetypes.guess_extension(content_type or '') or ''
    return f"{field_name}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{extension}"


def validate_files(files, rule: UploadRule):
    if not files:
        raise ValidationFailed('Please upload at least one file.')
    if len(files) > rule.max_files:
        raise ValidationFailed(f'Too many files. Maximum is {rule.max_files}.')
    for uploaded in files:
        if uploaded.content_type not in rule.content_types:
            raise ValidationFailed(rule.type_error)
        if uploaded.size > rule.max_size:
            raise ValidationFailed(f'File too large. Maximum size is {rule.max_size // MB}MB.')


def store_files(files, rule: UploadRule, field_name: str) -> list:
    """Valide puis enregistre les fichiers ; retourne leurs URLs publiques."""
    validate_files(files, rule)
    urls = []
    for uploaded in files:
        name = build_filename(field_name, uploaded.name, uploaded.content_type)
        try:
            stored_name = default_storage.save(f'{rule.folder}/{name}', uploaded)
        except OSError as exc:
            raise MediaStorageError() from exc
        urls.append(default_storage.url(stored_name))
        logger.info("[Uploads] Stored %s (%d bytes)", stored_name, uploaded.size)
    return urls
