"""
Local content-addressed storage for uploaded files.

Identifiers are derived from the SHA-256 of the content, so the same bytes
always get the same identifier. Storing on IPFS is left to callers that
provide their own ContentStore.
"""

import hashlib
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

from .errors import EncodingError, StoreIOError

logger = logging.getLogger("ContentStore")

CID_PREFIX = "cid-backend-"


def content_id(data: bytes) -> str:
    """Demo CID: prefix + first 40 hex chars of the SHA-256"""
    return CID_PREFIX + hashlib.sha256(data).hexdigest()[:40]


@dataclass(frozen=True)
class ContentReference:
    cid: str
    filename: str
    stored_path: str

    def to_dict(self) -> Dict[str, Any]:
        return {"cid": self.cid, "filename": self.filename, "storedPath": self.stored_path}


class ContentStore(ABC):
    @abstractmethod
    def store(self, data: bytes, filename: str) -> ContentReference:
        ...


class LocalContentStore(ContentStore):
    """Writes uploads to ``<directory>/<epoch ms>-<filename>``"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def store(self, data: bytes, filename: str) -> ContentReference:
        if not data:
            raise EncodingError("no file")

        # Strip any client-supplied directories
        name = Path(filename or "upload").name or "upload"
        path = self.directory / f"{int(time.time() * 1000)}-{name}"

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to store upload {name}: {e}")
            raise StoreIOError(f"Failed to store upload: {e}") from e

        cid = content_id(data)
        logger.info(f"Stored {name} as {cid}")
        return ContentReference(cid=cid, filename=name, stored_path=str(path))
