import logging
import os
import secrets
import time
from typing import BinaryIO, Optional
from sqlalchemy.orm import Session, sessionmaker
from ..storage.repository import UploadRepository
from .errors import PayloadTooLargeError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIMES = {
    "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp",
    "video/mp4", "video/webm", "video/ogg", "video/quicktime", "video/x-matroska",
    "application/pdf", "text/plain", "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

ALLOWED_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".webp",
    ".mp4", ".webm", ".ogg", ".mov", ".mkv",
    ".pdf", ".txt", ".doc", ".docx",
}

CHUNK_SIZE = 1024 * 1024


def is_allowed(content_type: Optional[str], original_name: Optional[str]) -> bool:
    mime = (content_type or "").lower()
    ext = os.path.splitext(original_name or "")[1].lower()
    return mime in ALLOWED_MIMES or ext in ALLOWED_EXTENSIONS


class UploadService:
    """
    Stores uploaded assets on disk under upload_dir; they are served
    back from /uploads.
    """

    def __init__(self, upload_dir: str, max_bytes: int, db_session_factory: sessionmaker) -> None:
        self._upload_dir = upload_dir
        self._max_bytes = max_bytes
        self._db_session_factory = db_session_factory

    def store(self, stream: BinaryIO, original_name: Optional[str], content_type: Optional[str],
              kind: str = "asset") -> dict:
        if not original_name and not content_type:
            raise ValidationError("no file uploaded or file rejected (size/type)")
        if not is_allowed(content_type, original_name):
            raise ValidationError("unsupported file type", content_type=content_type)

        os.makedirs(self._upload_dir, exist_ok=True)
        ext = os.path.splitext(original_name or "")[1].lower()
        filename = f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"
        path = os.path.join(self._upload_dir, filename)

        size = 0
        try:
            with open(path, "wb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self._max_bytes:
                        raise PayloadTooLargeError("File too large", maxBytes=self._max_bytes)
                    out.write(chunk)
        except PayloadTooLargeError:
            os.remove(path)
            logger.warning(f"⚠️ Upload rejected, too large: name={original_name}, limit={self._max_bytes}")
            raise
        if size == 0:
            os.remove(path)
            raise ValidationError("no file uploaded or file rejected (size/type)")

        url = f"/uploads/{filename}"
        db_session: Session = self._db_session_factory()
        try:
            upload = UploadRepository(db_session).create(
                filename=filename,
                original_name=original_name,
                content_type=content_type,
                size=size,
                kind=kind,
                url=url,
            )
        finally:
            db_session.close()

        logger.info(f"Upload stored: id={upload.id}, filename={filename}, size={size}, kind={kind}")
        return {"success": True, "url": url, "id": upload.id, "filename": filename}
