import sqlite3
import json
import logging
import os
import sys
from typing import List, Dict, Any

from author import Author
from book import Book
from config import settings
from utils.validators import NumberValidator, TextValidator

logger = logging.getLogger(__name__)

# Default database file.
# Priority:
# 1) LIBRARY_DB_FILE (through settings)
# 2) library.db in the working directory
DATABASE_FILE = settings.database_file
SEED_FILE = settings.seed_file


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


def get_db_connection() -> sqlite3.Connection:
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(DATABASE_FILE)
    conn.row_factory = sqlite3.Row
    # SQLite only enforces ON DELETE CASCADE with this pragma, per connection
    conn.execute("PRAGMA foreign_keys = ON;")
    # Built-in LOWER()/LIKE only fold ASCII
    conn.create_function("casefold", 1, _casefold, deterministic=True)
    return conn


def create_tables() -> None:
    """Creates the necessary tables in the database if they don't exist."""
    conn = get_db_connection()
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS authors (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                bio TEXT,
                nationality TEXT,
                birth_year INTEGER,
                created_at TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                genre TEXT,
                pages INTEGER CHECK(pages IS NULL OR pages >= 0),
                published_year INTEGER,
                author_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (author_id) REFERENCES authors(id) ON DELETE CASCADE
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_authors_name ON authors(name)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_genre ON books(genre)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_author_id ON books(author_id)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_created_at ON books(created_at)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_published_year ON books(published_year)")
        conn.commit()
    finally:
        conn.close()


def _running_under_pytest() -> bool:
    return bool(os.environ.get("PYTEST_CURRENT_TEST")) or "pytest" in sys.modules


def seed_from_json(seed_file: str | None = None, force: bool = False) -> int:
    """Imports authors and their books from a JSON seed file into an empty database.

    The file holds a list of authors, each optionally carrying a ``books`` list.
    Seeding only happens when the authors table is empty. Returns the number of
    books imported.
    """
    # Keep test databases empty unless a test asks for seeding explicitly.
    if not force and _running_under_pytest():
        return 0

    path = seed_file or SEED_FILE
    if not path or not os.path.exists(path):
        return 0

    conn = get_db_connection()
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM authors")
        if cursor.fetchone()[0] > 0:
            return 0  # Database already has data

        try:
            with open(path, "r", encoding="utf-8") as f:
                data: List[Dict[str, Any]] = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.error(f"Error reading or parsing seed file {path}: {e}")
            return 0

        authors_to_insert = []
        books_to_insert = []
        seen_emails = set()
        for item in data if isinstance(data, list) else []:
            # Basic validation
            if not isinstance(item, dict):
                continue
            name, email = item.get("name"), item.get("email")
            if not TextValidator.is_non_blank(name) or not TextValidator.validate_email(email):
                continue
            if email.strip().lower() in seen_emails:
                continue
            seen_emails.add(email.strip().lower())

            birth_year = item.get("birthYear", item.get("birth_year"))
            author = Author(
                name=name,
                email=email,
                bio=TextValidator.blank_to_none(item.get("bio")),
                nationality=TextValidator.blank_to_none(item.get("nationality")),
                birth_year=birth_year if NumberValidator.validate_year(birth_year) else None,
            )
            authors_to_insert.append((
                author.id, author.name, author.email, author.bio,
                author.nationality, author.birth_year, author.created_at,
            ))

            for raw in item.get("books") or []:
                if not isinstance(raw, dict) or not TextValidator.is_non_blank(raw.get("title")):
                    continue
                pages = raw.get("pages")
                year = raw.get("publishedYear", raw.get("published_year"))
                book = Book(
                    title=raw["title"],
                    author_id=author.id,
                    genre=TextValidator.blank_to_none(raw.get("genre")),
                    pages=pages if NumberValidator.validate_pages(pages) else None,
                    published_year=year if NumberValidator.validate_year(year) else None,
                )
                books_to_insert.append((
                    book.id, book.title, book.genre, book.pages,
                    book.published_year, book.author_id, book.created_at,
                ))

        try:
            cursor.executemany(
                "INSERT INTO authors (id, name, email, bio, nationality, birth_year, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                authors_to_insert,
            )
            cursor.executemany(
                "INSERT INTO books (id, title, genre, pages, published_year, author_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                books_to_insert,
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            logger.error(f"Seed file {path} rejected by the database: {e}")
            return 0

        logger.info(f"Seeded {len(authors_to_insert)} authors and {len(books_to_insert)} books from {path}")
        return len(books_to_insert)
    finally:
        conn.close()


def initialize_database() -> None:
    """Initializes the database, creating tables and seeding data if needed."""
    create_tables()
    seed_from_json()
