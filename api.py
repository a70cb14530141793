import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from author import Author
from book import Book
from config import settings
from database import get_db_connection
from library import Library
from search_query import build_pagination, normalize_search_query

logging.basicConfig(level=settings.effective_log_level)
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_library() -> Library:
    """Dependency returning the shared Library."""
    return Library()


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_library()  # create tables and seed before the first request
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# Compress responses larger than 1KB
app.add_middleware(GZipMiddleware, minimum_size=1000)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message, headers=None) -> JSONResponse:
    # The web UI reads "error", FastAPI clients read "detail"
    return JSONResponse(status_code=status_code, content={"detail": message, "error": message}, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return _error_response(500, "Internal server error.")


# --- Models ---
class CamelModel(BaseModel):
    """JSON uses camelCase keys; Python code uses the snake_case field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthorRefModel(CamelModel):
    id: str
    name: str


class AuthorModel(CamelModel):
    id: str
    name: str
    email: str
    bio: str | None = None
    nationality: str | None = None
    birth_year: int | None = None
    created_at: str | None = None


class AuthorCreateModel(CamelModel):
    name: str
    email: str
    bio: str | None = None
    nationality: str | None = None
    birth_year: int | None = None


class AuthorUpdateModel(CamelModel):
    name: str | None = None
    email: str | None = None
    bio: str | None = None
    nationality: str | None = None
    birth_year: int | None = None


class BookModel(CamelModel):
    id: str
    title: str
    genre: str | None = None
    pages: int | None = None
    published_year: int | None = None
    author_id: str
    created_at: str | None = None
    author: AuthorRefModel | None = None


class BookCreateModel(CamelModel):
    title: str
    author_id: str
    genre: str | None = None
    pages: int | None = Field(default=None, ge=0)
    published_year: int | None = None


class BookUpdateModel(CamelModel):
    title: str | None = None
    author_id: str | None = None
    genre: str | None = None
    pages: int | None = Field(default=None, ge=0)
    published_year: int | None = None


class AuthorBooksModel(CamelModel):
    books: List[BookModel]


class BookYearModel(CamelModel):
    title: str
    year: int


class BookPagesModel(CamelModel):
    title: str
    pages: int


class AuthorStatsModel(CamelModel):
    author_id: str
    author_name: str
    total_books: int
    first_book: BookYearModel | None = None
    latest_book: BookYearModel | None = None
    average_pages: int
    genres: List[str]
    longest_book: BookPagesModel | None = None
    shortest_book: BookPagesModel | None = None


class PaginationModel(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class BookSearchResponse(CamelModel):
    data: List[BookModel]
    pagination: PaginationModel


class CatalogStatsModel(CamelModel):
    total_authors: int
    total_books: int


class MessageModel(BaseModel):
    message: str


# --- Health check ---
@app.get("/health")
def health():
    """Lightweight health endpoint: tries a database round trip."""
    db_ok = True
    try:
        conn = get_db_connection()
        try:
            conn.execute("SELECT 1")
        finally:
            conn.close()
    except sqlite3.Error:
        logger.warning("Health check could not reach the database", exc_info=True)
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": db_ok,
    }


@app.get("/api/stats", response_model=CatalogStatsModel)
def get_catalog_stats(library: Library = Depends(get_library)):
    """Number of authors and books in the catalog."""
    return CatalogStatsModel(**library.get_statistics())


# --- Authors ---
def _get_author_or_404(library: Library, author_id: str) -> Author:
    author = library.find_author(author_id)
    if not author:
        raise HTTPException(status_code=404, detail="Author not found.")
    return author


@app.get("/api/authors", response_model=List[AuthorModel])
def list_authors(library: Library = Depends(get_library)):
    return [AuthorModel(**a.to_dict()) for a in library.list_authors()]


@app.post("/api/authors", response_model=AuthorModel, status_code=201)
def create_author(payload: AuthorCreateModel, library: Library = Depends(get_library)):
    author = Author(**payload.model_dump())
    try:
        library.add_author(author)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AuthorModel(**author.to_dict())


@app.get("/api/authors/{author_id}", response_model=AuthorModel)
def get_author(author_id: str, library: Library = Depends(get_library)):
    return AuthorModel(**_get_author_or_404(library, author_id).to_dict())


@app.put("/api/authors/{author_id}", response_model=AuthorModel)
def update_author(author_id: str, update: AuthorUpdateModel, library: Library = Depends(get_library)):
    """Update the fields present in the body; a null bio, nationality or birthYear clears it."""
    try:
        author = library.update_author(author_id, update.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not author:
        raise HTTPException(status_code=404, detail="Author not found.")
    return AuthorModel(**author.to_dict())


@app.delete("/api/authors/{author_id}", response_model=MessageModel)
def delete_author(author_id: str, library: Library = Depends(get_library)):
    """Delete an author and all of their books."""
    if not library.remove_author(author_id):
        raise HTTPException(status_code=404, detail="Author not found.")
    return MessageModel(message="Author deleted.")


@app.get("/api/authors/{author_id}/books", response_model=AuthorBooksModel)
def get_author_books(author_id: str, library: Library = Depends(get_library)):
    _get_author_or_404(library, author_id)
    books = library.list_books_by_author(author_id)
    return AuthorBooksModel(books=[BookModel(**b.to_dict()) for b in books])


@app.get("/api/authors/{author_id}/stats", response_model=AuthorStatsModel)
def get_author_stats(author_id: str, library: Library = Depends(get_library)):
    """First/latest book, average pages, genres and longest/shortest book of an author."""
    stats = library.get_author_stats(author_id)
    if stats is None:
        raise HTTPException(status_code=404, detail="Author not found.")
    return AuthorStatsModel(**stats.to_dict())


# --- Books ---
@app.get("/api/books", response_model=List[BookModel])
def list_books(library: Library = Depends(get_library)):
    return [BookModel(**b.to_dict()) for b in library.list_books()]


@app.post("/api/books", response_model=BookModel, status_code=201)
def create_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    book = Book(**payload.model_dump())
    try:
        library.add_book(book)
    except LookupError:
        raise HTTPException(status_code=404, detail="Author not found.")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BookModel(**book.to_dict())


# Declared before /api/books/{book_id} so "search" is not taken for an id
@app.get("/api/books/search", response_model=BookSearchResponse)
def search_books(
    search: Optional[str] = Query(None, description="Case-insensitive title substring"),
    genre: Optional[str] = Query(None, description="Exact genre"),
    author_name: Optional[str] = Query(None, alias="authorName", description="Case-insensitive author name substring"),
    page: Optional[str] = Query(None, description="Page number, from 1"),
    limit: Optional[str] = Query(None, description="Page size, 1 to 50"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="title | publishedYear | createdAt"),
    order: Optional[str] = Query(None, description="asc | desc"),
    library: Library = Depends(get_library),
):
    """Search, filter, sort and paginate books.

    Parameters are taken as raw strings: invalid values fall back to their
    defaults instead of producing a validation error.
    """
    query = normalize_search_query({
        "search": search,
        "genre": genre,
        "authorName": author_name,
        "page": page,
        "limit": limit,
        "sortBy": sort_by,
        "order": order,
    })
    total = library.count_books(query)
    books = library.search_books(query)
    return BookSearchResponse(
        data=[BookModel(**b.to_dict()) for b in books],
        pagination=PaginationModel(**build_pagination(query.page, query.limit, total)),
    )


@app.get("/api/books/{book_id}", response_model=BookModel)
def get_book(book_id: str, library: Library = Depends(get_library)):
    book = library.find_book(book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    return BookModel(**book.to_dict())


@app.put("/api/books/{book_id}", response_model=BookModel)
def update_book(book_id: str, update: BookUpdateModel, library: Library = Depends(get_library)):
    try:
        book = library.update_book(book_id, update.model_dump(exclude_unset=True))
    except LookupError:
        raise HTTPException(status_code=404, detail="Author not found.")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    return BookModel(**book.to_dict())


@app.delete("/api/books/{book_id}", response_model=MessageModel)
def delete_book(book_id: str, library: Library = Depends(get_library)):
    if not library.remove_book(book_id):
        raise HTTPException(status_code=404, detail="Book not found.")
    return MessageModel(message="Book deleted.")
