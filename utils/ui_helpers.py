import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _dash(value: Any) -> str:
    return "-" if value is None else str(value)


def print_author_list(authors: List[Any]) -> None:
    """Print authors in the current output mode.
    - plain: 'id - Name <email>' lines, or 'No authors in catalog.'
    - json: JSON array of id, name, email
    - rich: Rich table
    """
    if not authors:
        print("No authors in catalog.")
        return

    mode = get_output_mode()
    if mode == "json":
        print(json.dumps([{"id": a.id, "name": a.name, "email": a.email} for a in authors], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="✍️ Authors", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Email", style="white")
        table.add_column("Nationality", style="dim")
        for a in authors:
            table.add_row(a.id, a.name, a.email, _dash(a.nationality))
        _console.print(table)
    else:
        for a in authors:
            print(f"{a.id} - {a.name} <{a.email}>")


def print_book_list(books: List[Any], pagination: Dict[str, Any] | None = None) -> None:
    """Print books in the current output mode, followed by the page line when paginated."""
    mode = get_output_mode()

    if mode == "json":
        payload: Any = [b.to_dict() for b in books]
        if pagination is not None:
            payload = {"data": payload, "pagination": pagination}
        print(json.dumps(payload, ensure_ascii=False))
        return

    if not books:
        print("No books found.")
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Genre", style="dim")
        table.add_column("Year", justify="right")
        table.add_column("Pages", justify="right")
        for b in books:
            author = (b.author or {}).get("name", "")
            table.add_row(b.id, b.title, author, _dash(b.genre), _dash(b.published_year), _dash(b.pages))
        _console.print(table)
    else:
        for b in books:
            author = (b.author or {}).get("name", "")
            print(f"{b.id} - {b.title} by {author} ({_dash(b.published_year)})")

    if pagination is not None:
        print(f"Page {pagination['page']} of {pagination['totalPages']} ({pagination['total']} books)")


def print_author_stats(stats: Any) -> None:
    """Print an author's statistics summary.
    - plain: one 'Label: value' line per figure
    - json: the API's camelCase stats object
    - rich: Panel
    """
    mode = get_output_mode()

    def with_year(entry):
        return f"{entry.title} ({entry.year})" if entry else "-"

    def with_pages(entry):
        return f"{entry.title} ({entry.pages} pages)" if entry else "-"

    if mode == "json":
        d = stats.to_dict()
        print(json.dumps({
            "authorId": d["author_id"],
            "authorName": d["author_name"],
            "totalBooks": d["total_books"],
            "firstBook": d["first_book"],
            "latestBook": d["latest_book"],
            "averagePages": d["average_pages"],
            "genres": d["genres"],
            "longestBook": d["longest_book"],
            "shortestBook": d["shortest_book"],
        }, ensure_ascii=False))
        return

    lines = [
        ("Author", stats.author_name),
        ("Total Books", stats.total_books),
        ("First Book", with_year(stats.first_book)),
        ("Latest Book", with_year(stats.latest_book)),
        ("Average Pages", stats.average_pages),
        ("Genres", ", ".join(stats.genres) or "-"),
        ("Longest Book", with_pages(stats.longest_book)),
        ("Shortest Book", with_pages(stats.shortest_book)),
    ]
    if mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {value}" for label, value in lines)
        _console.print(Panel.fit(content, title="📊 Author Stats", border_style="blue"))
    else:
        for label, value in lines:
            print(f"{label}: {value}")


def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print catalog totals in the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    authors = stats.get("total_authors", 0)
    total = stats.get("total_books", 0)

    if mode == "json":
        print(json.dumps({"totalAuthors": authors, "totalBooks": total}, ensure_ascii=False))
    elif mode == "rich":
        content = f"[bold]Total Authors:[/] {authors}\n[bold]Total Books:[/] {total}"
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        print(f"Total Authors: {authors}")
        print(f"Total Books: {total}")
