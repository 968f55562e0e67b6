"""
Image storage backends.

Product images live outside the database.  The service layer only
relies on a narrow interface: ``upload`` returns the public URL and a
provider identifier (``public_id``) for a stored file, and ``delete``
removes a file given that identifier.  Two backends implement it:

* ``CloudinaryStorage`` uploads through the ``cloudinary`` SDK and is
  used whenever Cloudinary credentials are set;
* ``LocalStorage`` writes files below ``settings.upload_dir``, which
  ``main.py`` serves under ``/uploads``.

Both raise ``StorageError`` for any provider failure.
"""

import io
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

import cloudinary.exceptions
import cloudinary.uploader

from .config import settings
from .errors import StorageError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


@dataclass
class ImageUpload:
    """An image received from a client, not yet stored."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class StoredImage:
    url: str
    public_id: str


class ImageStorage:
    """Interface implemented by every storage backend."""

    def upload(self, image: ImageUpload) -> StoredImage:
        raise NotImplementedError

    def delete(self, public_id: str) -> None:
        raise NotImplementedError


class CloudinaryStorage(ImageStorage):
    """Store images in Cloudinary through the official SDK."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "products") -> None:
        self.folder = folder
        self.options = {"cloud_name": cloud_name, "api_key": api_key, "api_secret": api_secret}

    def upload(self, image: ImageUpload) -> StoredImage:
        try:
            body = cloudinary.uploader.upload(
                io.BytesIO(image.content),
                folder=self.folder,
                resource_type="image",
                **self.options,
            )
        except cloudinary.exceptions.Error as exc:
            logger.error("Cloudinary upload failed: %s", exc)
            raise StorageError("Cloudinary upload failed") from exc
        url = body.get("secure_url") or body.get("url")
        public_id = body.get("public_id")
        if not url or not public_id:
            raise StorageError("Cloudinary upload returned no URL")
        return StoredImage(url=str(url), public_id=str(public_id))

    def delete(self, public_id: str) -> None:
        try:
            body = cloudinary.uploader.destroy(public_id, resource_type="image", invalidate=True, **self.options)
        except cloudinary.exceptions.Error as exc:
            logger.error("Cloudinary destroy failed: %s", exc)
            raise StorageError("Cloudinary destroy failed") from exc
        if body.get("result") != "ok":
            raise StorageError(f"Cloudinary could not delete {public_id}: {body.get('result')}")


class LocalStorage(ImageStorage):
    """Store images on the local filesystem."""

    def __init__(self, root: str, folder: str = "products", base_url: str = "/uploads") -> None:
        self.root = Path(root)
        self.folder = folder
        self.base_url = base_url.rstrip("/")

    def upload(self, image: ImageUpload) -> StoredImage:
        suffix = Path(image.filename or "").suffix.lower() or ".bin"
        name = uuid.uuid4().hex
        target_dir = self.root / self.folder
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / f"{name}{suffix}").write_bytes(image.content)
        except OSError as exc:
            raise StorageError("Could not store image") from exc
        return StoredImage(
            url=f"{self.base_url}/{self.folder}/{name}{suffix}",
            public_id=f"{self.folder}/{name}",
        )

    def delete(self, public_id: str) -> None:
        folder, _, name = public_id.rpartition("/")
        if not name or "." in folder or "." in name:
            raise StorageError(f"Invalid public id {public_id}")
        matches = list((self.root / folder).glob(f"{name}.*"))
        if not matches:
            raise StorageError(f"Image {public_id} not found")
        try:
            for path in matches:
                path.unlink()
        except OSError as exc:
            raise StorageError(f"Could not delete {public_id}") from exc


def get_storage() -> ImageStorage:
    """Return the storage backend selected by the current settings."""
    if settings.cloudinary_enabled:
        return CloudinaryStorage(
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
            folder=settings.cloudinary_folder,
        )
    return LocalStorage(settings.upload_dir, folder=settings.cloudinary_folder)
