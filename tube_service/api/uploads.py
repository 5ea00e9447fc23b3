"""
Multipart uploads - spool incoming files to the temp directory
"""
import asyncio
import logging
import os
import shutil
from typing import AsyncIterator, List, Optional
from uuid import uuid4

from fastapi import UploadFile

from ..application.assets import delete_local_file
from ..config import settings
from ..domain.errors import ValidationError

logger = logging.getLogger(__name__)


def get_file_extension(filename: str) -> str:
    """Get file extension"""
    return f".{filename.rsplit('.', 1)[-1].lower()}" if '.' in filename else ""


def validate_file_size(file: UploadFile) -> bool:
    """Validate file size"""
    file.file.seek(0, os.SEEK_END)
    file_size = file.file.tell()
    file.file.seek(0)

    max_size = settings.MAX_FILE_SIZE_MB * 1024 * 1024
    return file_size <= max_size


def _copy_to_disk(upload: UploadFile, local_path: str) -> None:
    with open(local_path, "wb") as out:
        shutil.copyfileobj(upload.file, out)


class TempUploads:
    """Temp files written for one request; leftovers are removed at the end"""

    def __init__(self, directory: str):
        self.directory = directory
        self.paths: List[str] = []

    async def save(self, upload: Optional[UploadFile], field: str, required: bool = False,
                   allowed_extensions: Optional[List[str]] = None) -> Optional[str]:
        """
        Write an uploaded file to the temp directory

        Returns:
            Local path, or None for an absent optional file

        Raises:
            ValidationError: Required file missing, wrong type or too large
        """
        if upload is None or not upload.filename:
            if required:
                raise ValidationError(f"The {field} file is required", errors=[f"{field} is missing"])
            return None

        extension = get_file_extension(upload.filename)
        if allowed_extensions is not None and extension not in allowed_extensions:
            raise ValidationError(
                f"Unsupported {field} file type",
                errors=[f"{field} must be one of: {', '.join(allowed_extensions)}"]
            )

        if not validate_file_size(upload):
            raise ValidationError(
                f"The {field} file exceeds {settings.MAX_FILE_SIZE_MB}MB"
            )

        os.makedirs(self.directory, exist_ok=True)
        local_path = os.path.join(self.directory, f"{uuid4().hex}{extension}")
        await asyncio.to_thread(_copy_to_disk, upload, local_path)
        self.paths.append(local_path)
        return local_path

    def cleanup(self) -> None:
        for path in self.paths:
            if os.path.exists(path):
                logger.debug(f"Removing leftover temp file {path}")
                delete_local_file(path)
        self.paths.clear()


async def get_temp_uploads() -> AsyncIterator[TempUploads]:
    """Dependency yielding a per-request temp upload area"""
    uploads = TempUploads(settings.UPLOAD_TMP_DIR)
    try:
        yield uploads
    finally:
        uploads.cleanup()
