import logging
import subprocess
import sys
import webbrowser
from typing import NoReturn, Optional

import typer

from author import Author
from book import Book
from config import settings
from library import Library
from search_query import build_pagination, normalize_search_query
from utils.ui_helpers import (
    set_output_mode,
    print_author_list,
    print_book_list,
    print_author_stats,
    print_stats_result,
)

logger = logging.getLogger(__name__)

app = typer.Typer(help="Library catalog CLI")


def _get_library() -> Library:
    return Library()


def _fail(message: str) -> NoReturn:
    print(message)
    raise typer.Exit(code=1)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    logging.basicConfig(level=settings.effective_log_level)
    if output:
        set_output_mode(output)


# ------------------------- Authors ------------------------- #
@app.command("authors")
def cli_authors():
    """List all authors."""
    print_author_list(_get_library().list_authors())


@app.command("add-author")
def cli_add_author(
    name: str,
    email: str,
    bio: Optional[str] = typer.Option(None, "--bio", help="Short biography"),
    nationality: Optional[str] = typer.Option(None, "--nationality", "-n", help="Nationality"),
    birth_year: Optional[int] = typer.Option(None, "--birth-year", "-b", help="Year of birth"),
):
    """Add an author."""
    try:
        author = _get_library().add_author(
            Author(name=name, email=email, bio=bio, nationality=nationality, birth_year=birth_year)
        )
    except ValueError as e:
        _fail(f"Error: {e}")
    print(f"Added author: {author.name} ({author.id})")


@app.command("remove-author")
def cli_remove_author(author_id: str):
    """Remove an author and all of their books."""
    if not _get_library().remove_author(author_id):
        _fail(f"Author {author_id} not found.")
    print(f"Author {author_id} has been removed.")


@app.command("author-stats")
def cli_author_stats(author_id: str):
    """Show first/latest book, average pages, genres and longest/shortest book of an author."""
    stats = _get_library().get_author_stats(author_id)
    if stats is None:
        _fail(f"Author {author_id} not found.")
    print_author_stats(stats)


# ------------------------- Books ------------------------- #
@app.command("books")
def cli_books(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Title contains (case-insensitive)"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Exact genre"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author name contains (case-insensitive)"),
    page: Optional[str] = typer.Option(None, "--page", "-p", help="Page number (default 1)"),
    limit: Optional[str] = typer.Option(None, "--limit", "-l", help="Books per page, 1-50 (default 10)"),
    sort_by: Optional[str] = typer.Option(None, "--sort-by", help="title | publishedYear | createdAt"),
    order: Optional[str] = typer.Option(None, "--order", help="asc | desc"),
):
    """Search books with filters, sorting and pagination."""
    query = normalize_search_query({
        "search": search,
        "genre": genre,
        "authorName": author,
        "page": page,
        "limit": limit,
        "sortBy": sort_by,
        "order": order,
    })
    lib = _get_library()
    total = lib.count_books(query)
    print_book_list(lib.search_books(query), build_pagination(query.page, query.limit, total))


@app.command("add-book")
def cli_add_book(
    title: str,
    author_id: str = typer.Option(..., "--author-id", help="ID of the book's author"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Genre"),
    pages: Optional[int] = typer.Option(None, "--pages", help="Page count"),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Publication year"),
):
    """Add a book to an existing author."""
    try:
        book = _get_library().add_book(
            Book(title=title, author_id=author_id, genre=genre, pages=pages, published_year=year)
        )
    except LookupError:
        _fail(f"Author {author_id} not found.")
    except ValueError as e:
        _fail(f"Error: {e}")
    print(f"Added book: {book.title} ({book.id})")


@app.command("remove-book")
def cli_remove_book(book_id: str):
    """Remove a book."""
    if not _get_library().remove_book(book_id):
        _fail(f"Book {book_id} not found.")
    print(f"Book {book_id} has been removed.")


@app.command("stats")
def cli_stats():
    """Show catalog totals."""
    print_stats_result(_get_library().get_statistics())


@app.command("serve")
def cli_serve(open_browser: bool = typer.Option(True, "--open/--no-open", help="Open the API docs in a browser")):
    """Start the HTTP API with uvicorn."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/docs"
    print(f"Starting API on http://{host}:{port}/")
    if open_browser:
        try:
            webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning(f"Could not open a browser: {e}")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
    ]
    if settings.debug:
        args.append("--reload")
    subprocess.run(args)


if __name__ == "__main__":
    app()
