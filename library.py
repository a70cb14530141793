import logging
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

import database
from author import Author
from author_stats import AuthorStats, compute_author_stats
from book import Book
from database import get_db_connection, initialize_database
from search_query import SearchQuery
from utils.validators import NumberValidator, TextValidator

logger = logging.getLogger(__name__)

_AUTHOR_COLUMNS = "id, name, email, bio, nationality, birth_year, created_at"
_BOOK_COLUMNS = (
    "b.id, b.title, b.genre, b.pages, b.published_year, b.author_id, b.created_at, "
    "a.name AS author_name"
)
_BOOK_FROM = "FROM books b JOIN authors a ON a.id = b.author_id"

# Sort fields of the search descriptor mapped to columns
_SORT_COLUMNS = {
    "title": "b.title",
    "publishedYear": "b.published_year",
    "createdAt": "b.created_at",
}

_AUTHOR_FIELDS = ("name", "email", "bio", "nationality", "birth_year")
_BOOK_FIELDS = ("title", "genre", "pages", "published_year", "author_id")


class Library:
    """Manages authors and books and their persistence."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        # Lets tests (and callers) point the module-level helpers in database.py
        # at another database file.
        if db_file:
            database.DATABASE_FILE = db_file
        initialize_database()  # Ensure DB and tables exist, seed if empty

    # ------------------------- Authors ------------------------- #
    def list_authors(self) -> List[Author]:
        conn = get_db_connection()
        try:
            rows = conn.execute(f"SELECT {_AUTHOR_COLUMNS} FROM authors ORDER BY name, created_at").fetchall()
            return [Author.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def find_author(self, author_id: str) -> Optional[Author]:
        conn = get_db_connection()
        try:
            row = conn.execute(f"SELECT {_AUTHOR_COLUMNS} FROM authors WHERE id = ?", (author_id,)).fetchone()
            return Author.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def add_author(self, author: Author) -> Author:
        """Add a pre-constructed Author. Emails are unique, ignoring case."""
        self._validate_author(author.name, author.email, author.birth_year)
        author.bio = TextValidator.blank_to_none(author.bio)
        author.nationality = TextValidator.blank_to_none(author.nationality)

        conn = get_db_connection()
        try:
            if self._email_taken(conn, author.email):
                raise ValueError(f"An author with email {author.email} already exists.")
            conn.execute(
                f"INSERT INTO authors ({_AUTHOR_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (author.id, author.name, author.email, author.bio,
                 author.nationality, author.birth_year, author.created_at),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValueError(f"An author with email {author.email} already exists.") from e
        finally:
            conn.close()
        logger.info(f"Author created: id={author.id}, name={author.name}")
        return author

    def update_author(self, author_id: str, changes: Dict[str, Any]) -> Optional[Author]:
        """Apply a partial update. Returns the updated author or None if not found.

        ``changes`` maps field names to new values; ``bio``, ``nationality`` and
        ``birth_year`` may be set to None to clear them.
        """
        changes = {k: v for k, v in changes.items() if k in _AUTHOR_FIELDS}
        if not changes:
            raise ValueError("Nothing to update.")

        author = self.find_author(author_id)
        if not author:
            return None

        name = changes.get("name", author.name)
        email = changes.get("email", author.email)
        birth_year = changes.get("birth_year", author.birth_year)
        self._validate_author(name, email, birth_year)

        author.name = name.strip()
        author.email = email.strip()
        author.birth_year = birth_year
        if "bio" in changes:
            author.bio = TextValidator.blank_to_none(changes["bio"])
        if "nationality" in changes:
            author.nationality = TextValidator.blank_to_none(changes["nationality"])

        conn = get_db_connection()
        try:
            if self._email_taken(conn, author.email, exclude_id=author_id):
                raise ValueError(f"An author with email {author.email} already exists.")
            conn.execute(
                "UPDATE authors SET name = ?, email = ?, bio = ?, nationality = ?, birth_year = ? WHERE id = ?",
                (author.name, author.email, author.bio, author.nationality, author.birth_year, author_id),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValueError(f"An author with email {author.email} already exists.") from e
        finally:
            conn.close()
        logger.info(f"Author updated: id={author_id}, fields={sorted(changes)}")
        return author

    def remove_author(self, author_id: str) -> bool:
        """Delete an author together with all of their books."""
        conn = get_db_connection()
        try:
            cursor = conn.execute("DELETE FROM authors WHERE id = ?", (author_id,))
            conn.commit()
            removed = cursor.rowcount > 0
        finally:
            conn.close()
        if removed:
            logger.info(f"Author removed: id={author_id}")
        return removed

    # ------------------------- Books ------------------------- #
    def list_books(self) -> List[Book]:
        conn = get_db_connection()
        try:
            rows = conn.execute(
                f"SELECT {_BOOK_COLUMNS} {_BOOK_FROM} ORDER BY b.created_at DESC, b.rowid DESC"
            ).fetchall()
            return [Book.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def find_book(self, book_id: str) -> Optional[Book]:
        conn = get_db_connection()
        try:
            row = conn.execute(f"SELECT {_BOOK_COLUMNS} {_BOOK_FROM} WHERE b.id = ?", (book_id,)).fetchone()
            return Book.from_dict(dict(row)) if row else None
        finally:
            conn.close()

    def list_books_by_author(self, author_id: str) -> List[Book]:
        conn = get_db_connection()
        try:
            rows = conn.execute(
                f"SELECT {_BOOK_COLUMNS} {_BOOK_FROM} WHERE b.author_id = ? ORDER BY b.created_at, b.rowid",
                (author_id,),
            ).fetchall()
            return [Book.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    def add_book(self, book: Book) -> Book:
        """Add a pre-constructed Book to an existing author."""
        self._validate_book(book.title, book.pages, book.published_year)
        author = self.find_author(book.author_id)
        if not author:
            raise LookupError(f"Author {book.author_id} not found.")
        book.genre = TextValidator.blank_to_none(book.genre)

        conn = get_db_connection()
        try:
            conn.execute(
                "INSERT INTO books (id, title, genre, pages, published_year, author_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (book.id, book.title, book.genre, book.pages, book.published_year, book.author_id, book.created_at),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            # The author was deleted between the lookup and the insert
            raise LookupError(f"Author {book.author_id} not found.") from e
        finally:
            conn.close()
        book.author = {"id": author.id, "name": author.name}
        logger.info(f"Book created: id={book.id}, title={book.title}, author_id={book.author_id}")
        return book

    def update_book(self, book_id: str, changes: Dict[str, Any]) -> Optional[Book]:
        """Apply a partial update. Returns the updated book or None if not found."""
        changes = {k: v for k, v in changes.items() if k in _BOOK_FIELDS}
        if not changes:
            raise ValueError("Nothing to update.")

        book = self.find_book(book_id)
        if not book:
            return None

        title = changes.get("title", book.title)
        pages = changes.get("pages", book.pages)
        published_year = changes.get("published_year", book.published_year)
        self._validate_book(title, pages, published_year)

        author_id = changes.get("author_id") or book.author_id
        if author_id != book.author_id:
            author = self.find_author(author_id)
            if not author:
                raise LookupError(f"Author {author_id} not found.")
            book.author = {"id": author.id, "name": author.name}

        book.title = title.strip()
        book.pages = pages
        book.published_year = published_year
        book.author_id = author_id
        if "genre" in changes:
            book.genre = TextValidator.blank_to_none(changes["genre"])

        conn = get_db_connection()
        try:
            conn.execute(
                "UPDATE books SET title = ?, genre = ?, pages = ?, published_year = ?, author_id = ? WHERE id = ?",
                (book.title, book.genre, book.pages, book.published_year, book.author_id, book_id),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise LookupError(f"Author {author_id} not found.") from e
        finally:
            conn.close()
        logger.info(f"Book updated: id={book_id}, fields={sorted(changes)}")
        return book

    def remove_book(self, book_id: str) -> bool:
        conn = get_db_connection()
        try:
            cursor = conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
            conn.commit()
            removed = cursor.rowcount > 0
        finally:
            conn.close()
        if removed:
            logger.info(f"Book removed: id={book_id}")
        return removed

    # ------------------------- Search ------------------------- #
    @staticmethod
    def _search_filter(query: SearchQuery) -> Tuple[str, List[Any]]:
        """WHERE clause and parameters for the descriptor's filters."""
        clauses: List[str] = []
        params: List[Any] = []
        if query.search:
            clauses.append("instr(casefold(b.title), ?) > 0")
            params.append(query.search.casefold())
        if query.genre:
            clauses.append("b.genre = ?")
            params.append(query.genre)
        if query.author_name:
            clauses.append("instr(casefold(a.name), ?) > 0")
            params.append(query.author_name.casefold())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def count_books(self, query: SearchQuery) -> int:
        where, params = self._search_filter(query)
        conn = get_db_connection()
        try:
            return conn.execute(f"SELECT COUNT(*) {_BOOK_FROM} {where}", params).fetchone()[0]
        finally:
            conn.close()

    def search_books(self, query: SearchQuery) -> List[Book]:
        """One page of books matching the descriptor, joined with their author."""
        where, params = self._search_filter(query)
        column = _SORT_COLUMNS.get(query.sort_by, _SORT_COLUMNS["createdAt"])
        direction = "ASC" if query.order == "asc" else "DESC"
        sql = (
            f"SELECT {_BOOK_COLUMNS} {_BOOK_FROM} {where} "
            f"ORDER BY {column} {direction}, b.rowid {direction} LIMIT ? OFFSET ?"
        )
        conn = get_db_connection()
        try:
            rows = conn.execute(sql, [*params, query.limit, query.skip]).fetchall()
            return [Book.from_dict(dict(row)) for row in rows]
        finally:
            conn.close()

    # ------------------------- Statistics ------------------------- #
    def get_author_stats(self, author_id: str) -> Optional[AuthorStats]:
        author = self.find_author(author_id)
        if not author:
            return None
        return compute_author_stats(author.id, author.name, self.list_books_by_author(author_id))

    def get_statistics(self) -> Dict[str, Any]:
        """Get catalog totals."""
        conn = get_db_connection()
        try:
            total_authors = conn.execute("SELECT COUNT(*) FROM authors").fetchone()[0]
            total_books = conn.execute("SELECT COUNT(*) FROM books").fetchone()[0]
            return {"total_authors": total_authors, "total_books": total_books}
        finally:
            conn.close()

    # ------------------------- Utilities ------------------------- #
    @staticmethod
    def _validate_author(name: Optional[str], email: Optional[str], birth_year: Any) -> None:
        if not TextValidator.is_non_blank(name):
            raise ValueError("Author name cannot be empty.")
        if not TextValidator.validate_email(email):
            raise ValueError("Invalid email address.")
        if not NumberValidator.validate_year(birth_year):
            raise ValueError("Invalid birth year.")

    @staticmethod
    def _validate_book(title: Optional[str], pages: Any, published_year: Any) -> None:
        if not TextValidator.is_non_blank(title):
            raise ValueError("Book title cannot be empty.")
        if not NumberValidator.validate_pages(pages):
            raise ValueError("Pages must be a non-negative integer.")
        if not NumberValidator.validate_year(published_year):
            raise ValueError("Invalid published year.")

    @staticmethod
    def _email_taken(conn: sqlite3.Connection, email: str, exclude_id: Optional[str] = None) -> bool:
        row = conn.execute(
            "SELECT id FROM authors WHERE casefold(email) = ? AND id != ?",
            (email.strip().casefold(), exclude_id or ""),
        ).fetchone()
        return row is not None

    def close(self) -> None:
        """Connections are opened per operation, so there is nothing to release."""
        return None
