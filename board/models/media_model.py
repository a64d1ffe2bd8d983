from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO


@dataclass
class Upload:
    """One uploaded file as handed over by the HTTP layer."""

    stream: BinaryIO
    filename: str
    content_type: str | None = None

    @classmethod
    def from_file_storage(cls, file_storage):
        return cls(
            stream=getattr(file_storage, "stream", file_storage),
            filename=getattr(file_storage, "filename", "") or "",
            content_type=getattr(file_storage, "mimetype", None) or None,
        )


@dataclass
class StoredMedia:
    name: str
    content_type: str
    size: int | None = None
    etag: str | None = None
    last_modified: datetime | None = None
    path: str | None = None
