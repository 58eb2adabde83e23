import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from timecapsule.errors import DependencyFailure

logger = logging.getLogger(__name__)


class FileStorage:
    """Keeps capsule attachments on local disk. A file reference is the stored file name."""

    def __init__(self, upload_dir: str):
        self.root = Path(upload_dir)

    def store(self, upload: UploadFile) -> str:
        name = Path(upload.filename or "attachment").name
        file_ref = f"{uuid.uuid4().hex}_{name}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with open(self.root / file_ref, "wb") as out:
                shutil.copyfileobj(upload.file, out)
        except OSError as e:
            raise DependencyFailure(f"Could not store attachment: {e}") from e
        return file_ref

    def path(self, file_ref: str) -> Path:
        return self.root / Path(file_ref).name

    def discard(self, file_ref: Optional[str]) -> None:
        if not file_ref:
            return
        try:
            self.path(file_ref).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove attachment {file_ref}: {e}")
