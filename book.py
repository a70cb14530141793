from __future__ import annotations

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Book:
    """Represents a single book in the catalog."""

    def __init__(self, title: str, author_id: str, genre: str | None = None, pages: int | None = None,
                 published_year: int | None = None, id: str | None = None, created_at: str | None = None,
                 author: dict | None = None) -> None:
        self.id = id or new_id()
        self.title = title.strip()
        self.author_id = author_id
        # Blank genres are the same as no genre
        self.genre = (genre.strip() or None) if isinstance(genre, str) else genre
        self.pages = pages
        self.published_year = published_year
        self.created_at = created_at or utc_now()
        # Joined {id, name} of the owning author, when loaded with it
        self.author = author

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} ({self.published_year or 'n.d.'})"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "genre": self.genre,
            "pages": self.pages,
            "published_year": self.published_year,
            "author_id": self.author_id,
            "created_at": self.created_at,
        }
        if self.author is not None:
            data["author"] = dict(self.author)
        return data

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # Rows joined with authors carry author_name next to the book columns
        author = data.get("author")
        if author is None and data.get("author_name") is not None:
            author = {"id": data["author_id"], "name": data["author_name"]}
        return Book(
            id=data.get("id"),
            title=data["title"],
            author_id=data["author_id"],
            genre=data.get("genre"),
            pages=data.get("pages"),
            published_year=data.get("published_year"),
            created_at=data.get("created_at"),
            author=author,
        )
