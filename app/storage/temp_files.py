"""Ephemeral storage root for uploaded and optimised PDFs."""

import os
import shutil
import tempfile
from typing import Optional

from app.config import get_logger
from app.errors import UploadPersistError, UploadTooLargeError

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB


class TempFileStore:
    """Owns the directory every job artifact lives in.

    The root is wiped on startup and removed on shutdown; nothing in it is
    expected to survive a restart.
    """

    def __init__(self, base_dir: Optional[str] = None):
        if base_dir:
            self._base_dir = base_dir
        else:
            self._base_dir = os.path.join(tempfile.gettempdir(), "pdf_optimizer")

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def prepare(self) -> None:
        """Start from an empty root."""
        shutil.rmtree(self._base_dir, ignore_errors=True)
        os.makedirs(self._base_dir, exist_ok=True)
        logger.info("temp folder ready: %s", self._base_dir)

    def input_path(self, job_id: str) -> str:
        return os.path.join(self._base_dir, f"{job_id}.pdf")

    def output_path(self, job_id: str) -> str:
        return os.path.join(self._base_dir, f"final{job_id}.pdf")

    async def write_upload(self, path: str, upload, max_bytes: int) -> int:
        """Stream ``upload`` (anything with ``async read(n)``) to ``path``.

        Returns the number of bytes written. A partial file is removed on
        failure.
        """
        total = 0
        try:
            os.makedirs(self._base_dir, exist_ok=True)
            with open(path, "wb") as dst:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > max_bytes:
                        raise UploadTooLargeError(
                            f"File too large (max {max_bytes // (1024 * 1024)} MB)"
                        )
                    dst.write(chunk)
        except UploadTooLargeError:
            self.remove(path)
            raise
        except Exception as exc:
            self.remove(path)
            raise UploadPersistError() from exc
        return total

    def remove(self, path: Optional[str]) -> bool:
        """Delete one file, never raising. Returns True if a file was removed."""
        if not path:
            return False
        try:
            os.unlink(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("could not delete %s: %s", path, exc)
            return False

    def destroy(self) -> None:
        if not os.path.exists(self._base_dir):
            return
        try:
            shutil.rmtree(self._base_dir)
            logger.info("cleaned temp directory")
        except OSError as exc:
            logger.warning("temp cleanup failed: %s", exc)
