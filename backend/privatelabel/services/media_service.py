# Overview: Service-layer operations for media; stores label artwork and returns asset metadata.

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path

from flask import current_app
from werkzeug.utils import secure_filename

from ..validation import UpstreamServiceError, ValidationError

logger = logging.getLogger(__name__)

LABEL_IMAGE_FOLDER = "private-labels"


class LocalMediaStore:
    """
    Filesystem-backed object store.

    Assets live under MEDIA_ROOT/<folder>/<uuid>.<ext>; the public id is the
    path relative to MEDIA_ROOT and is what delete() takes.
    """

    def __init__(self, root: str | os.PathLike, *, allowed_extensions=None):
        self.root = Path(root)
        self.allowed_extensions = {e.lower() for e in (allowed_extensions or ())}

    @classmethod
    def from_app(cls, app=None) -> "LocalMediaStore":
        app = app or current_app
        root = app.config.get("MEDIA_ROOT") or os.path.join(app.instance_path, "media")
        return cls(root, allowed_extensions=app.config.get("MEDIA_ALLOWED_EXTENSIONS"))

    def _path_for(self, public_id: str) -> Path:
        path = (self.root / public_id).resolve()
        if self.root.resolve() not in path.parents:
            raise ValidationError("Invalid media id", {"public_id": public_id})
        return path

    def upload(self, file, *, folder: str) -> dict:
        """
        Persist a werkzeug FileStorage. Returns
        {url, secure_url, public_id, format, bytes, original_filename}.
        """
        original = secure_filename(file.filename or "")
        ext = original.rsplit(".", 1)[-1].lower() if "." in original else ""
        if not ext or (self.allowed_extensions and ext not in self.allowed_extensions):
            raise ValidationError(
                f"Unsupported file type: {file.filename}",
                {"filename": file.filename, "allowed": sorted(self.allowed_extensions)},
            )

        public_id = f"{folder}/{uuid.uuid4().hex}.{ext}"
        path = self.root / public_id
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as buffer:
                shutil.copyfileobj(file.stream, buffer)
            size = path.stat().st_size
        except OSError as exc:
            logger.exception("Failed to store upload %s", original)
            raise UpstreamServiceError("Failed to upload image", {"filename": file.filename}) from exc

        url = self.url_for(public_id)
        return {
            "url": url,
            "secure_url": url,
            "public_id": public_id,
            "format": ext,
            "bytes": size,
            "original_filename": file.filename,
        }

    def delete(self, public_id: str) -> None:
        try:
            self._path_for(public_id).unlink(missing_ok=True)
        except OSError as exc:
            raise UpstreamServiceError("Failed to delete image", {"public_id": public_id}) from exc

    def path_for(self, public_id: str) -> Path:
        return self._path_for(public_id)

    @staticmethod
    def url_for(public_id: str) -> str:
        prefix = current_app.config.get("MEDIA_URL_PREFIX", "/media")
        return f"{prefix.rstrip('/')}/{public_id}"


def get_media_store() -> LocalMediaStore:
    store = current_app.extensions.get("media_store")
    if store is None:
        store = LocalMediaStore.from_app()
    return store


def upload_label_images(files) -> list[dict]:
    """Upload all files or none: a failure removes what was already stored."""
    store = get_media_store()
    uploaded: list[dict] = []
    try:
        for file in files:
            uploaded.append(store.upload(file, folder=LABEL_IMAGE_FOLDER))
    except Exception:
        delete_quietly([asset["public_id"] for asset in uploaded])
        raise
    return uploaded


def delete_quietly(public_ids) -> None:
    """Best-effort delete; failures are logged and ignored."""
    store = get_media_store()
    for public_id in public_ids:
        try:
            store.delete(public_id)
        except Exception:
            logger.warning("Failed to delete media %s", public_id, exc_info=True)
