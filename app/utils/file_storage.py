# app/utils/file_storage.py
import logging
import secrets
import time
from functools import lru_cache
from pathlib import Path
from typing import Literal

from app.core.config import get_settings
from app.core.errors import StorageError

logger = logging.getLogger(__name__)

BlobKind = Literal["image", "report"]


def generate_blob_filename(prefix: str, suffix: str) -> str:
    """
    Build a collision-free filename that does not leak the uploaded name:
    ``{prefix}_{epoch-millis}_{32 hex chars}{ext}``.
    """
    ext = suffix if not suffix or suffix.startswith(".") else f".{suffix}"
    timestamp = int(time.time() * 1000)
    return f"{prefix}_{timestamp}_{secrets.token_hex(16)}{ext.lower()}"


class LocalBlobStore:
    """
    Filesystem blob store.

    Layout under the root: ``images/`` for uploads, ``reports/`` for PDFs.
    Only bare filenames are handed out; callers turn them into URLs with
    :meth:`resolve_url` at read time.
    """

    def __init__(self, root: str | Path, base_url: str, public_base_url: str | None = None):
        root = Path(root)
        if not root.is_absolute():
            # Relative to the current working directory
            root = Path.cwd() / root
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        for kind in ("image", "report"):
            self.directory(kind).mkdir(parents=True, exist_ok=True)

    def directory(self, kind: BlobKind) -> Path:
        return self.root / f"{kind}s"

    def path_for(self, filename: str, kind: BlobKind) -> Path:
        """
        Convert a stored filename into an absolute filesystem path.
        """
        return self.directory(kind) / Path(filename).name

    def store(self, data: bytes, suffix: str, kind: BlobKind = "image") -> str:
        """
        Save a blob of bytes and return its generated filename.
        """
        filename = generate_blob_filename(kind, suffix)
        full_path = self.path_for(filename, kind)
        try:
            with open(full_path, "wb") as f:
                f.write(data)
        except OSError as exc:
            logger.error("Failed to write %s blob %s", kind, filename, exc_info=True)
            raise StorageError("Failed to save file") from exc
        return filename

    def read(self, filename: str, kind: BlobKind) -> bytes:
        path = self.path_for(filename, kind)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError("Failed to read file") from exc

    def exists(self, filename: str, kind: BlobKind) -> bool:
        return self.path_for(filename, kind).is_file()

    def resolve_url(self, filename: str, kind: BlobKind) -> str:
        """
        Map a filename to a fetchable URL. The public tier wins when configured.
        """
        root = self.public_base_url or self.base_url
        return f"{root}/uploads/{kind}s/{Path(filename).name}"

    def delete(self, filename: str, kind: BlobKind) -> bool:
        path = self.path_for(filename, kind)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError("Failed to delete file") from exc
        return True


@lru_cache()
def get_blob_store() -> LocalBlobStore:
    settings = get_settings()
    return LocalBlobStore(
        settings.file_storage_root,
        base_url=settings.base_url,
        public_base_url=settings.public_base_url,
    )
