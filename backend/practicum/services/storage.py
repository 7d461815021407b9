"""Object storage for uploaded files (lesson plans, profile images).

Objects are written under ``settings.UPLOAD_DIR`` and served read-only by the
static mount at ``settings.PUBLIC_FILES_URL``, so every stored object is
publicly readable as soon as ``put`` returns.
"""

import logging
from pathlib import Path

from practicum.config import settings

logger = logging.getLogger(__name__)


class LocalObjectStorage:
    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _path_for(self, object_name: str) -> Path:
        path = (self.root / object_name).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Invalid object name: {object_name}")
        return path

    def put(self, object_name: str, content: bytes) -> str:
        """Store ``content`` and return its public URL."""
        path = self._path_for(object_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info("Stored object %s (%d bytes)", object_name, len(content))
        return self.public_url(object_name)

    def delete(self, object_name: str) -> None:
        path = self._path_for(object_name)
        if path.exists():
            path.unlink()
            logger.info("Deleted object %s", object_name)

    def exists(self, object_name: str) -> bool:
        return self._path_for(object_name).exists()

    def public_url(self, object_name: str) -> str:
        return f"{self.public_base_url}/{object_name}"


_storage = LocalObjectStorage(settings.UPLOAD_DIR, settings.PUBLIC_FILES_URL)


def get_storage() -> LocalObjectStorage:
    """FastAPI dependency returning the configured object storage."""
    return _storage
