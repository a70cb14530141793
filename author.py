from __future__ import annotations

from book import new_id, utc_now


class Author:
    """Represents an author of books in the catalog."""

    def __init__(self, name: str, email: str, bio: str | None = None, nationality: str | None = None,
                 birth_year: int | None = None, id: str | None = None, created_at: str | None = None) -> None:
        self.id = id or new_id()
        self.name = name.strip()
        self.email = email.strip()
        self.bio = bio
        self.nationality = nationality
        self.birth_year = birth_year
        self.created_at = created_at or utc_now()

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "bio": self.bio,
            "nationality": self.nationality,
            "birth_year": self.birth_year,
            "created_at": self.created_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Author":
        return Author(
            id=data.get("id"),
            name=data["name"],
            email=data["email"],
            bio=data.get("bio"),
            nationality=data.get("nationality"),
            birth_year=data.get("birth_year"),
            created_at=data.get("created_at"),
        )
