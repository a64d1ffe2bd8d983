import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


EDITABLE_FIELDS = ("title", "content")


def utc_now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass
class Post:
    title: str
    content: str
    files: list[str] = field(default_factory=list)
    author: str = ""
    date: str = field(default_factory=utc_now_iso)
    # Records written before ids existed have none.
    id: str | None = None

    @classmethod
    def create(cls, title, content, files, author):
        return cls(
            title=title,
            content=content,
            files=list(files),
            author=author,
            id=uuid.uuid4().hex,
        )

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            title=data.get("title", ""),
            content=data.get("content", ""),
            files=list(data.get("files") or []),
            author=data.get("author", ""),
            date=data.get("date", ""),
            id=data.get("id"),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "files": list(self.files),
            "author": self.author,
            "date": self.date,
        }

    def apply_patch(self, patch: dict):
        for name in EDITABLE_FIELDS:
            if name in patch:
                setattr(self, name, patch[name])
        self.date = utc_now_iso()
