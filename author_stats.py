import math
from dataclasses import dataclass, field, asdict
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class BookYear:
    title: str
    year: int


@dataclass(frozen=True)
class BookPages:
    title: str
    pages: int


@dataclass
class AuthorStats:
    """Aggregate figures over every book of one author."""
    author_id: str
    author_name: str
    total_books: int = 0
    first_book: Optional[BookYear] = None
    latest_book: Optional[BookYear] = None
    average_pages: int = 0
    genres: List[str] = field(default_factory=list)
    longest_book: Optional[BookPages] = None
    shortest_book: Optional[BookPages] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _has_pages(book) -> bool:
    pages = getattr(book, "pages", None)
    return isinstance(pages, (int, float)) and not isinstance(pages, bool)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_author_stats(author_id: str, author_name: str, books: Iterable) -> AuthorStats:
    """Summarize an author's books.

    ``books`` is any iterable of objects exposing ``title``, ``genre``,
    ``pages`` and ``published_year``. Missing pages or years only remove a book
    from the figures that need them; a book with ``pages == 0`` counts for
    the average and the longest book but never for the shortest one.
    """
    books = list(books)
    stats = AuthorStats(author_id=author_id, author_name=author_name, total_books=len(books))
    if not books:
        return stats

    # sorted() is stable: equal years keep their input order
    by_year = sorted((b for b in books if b.published_year is not None), key=lambda b: b.published_year)
    if by_year:
        stats.first_book = BookYear(title=by_year[0].title, year=by_year[0].published_year)
        stats.latest_book = BookYear(title=by_year[-1].title, year=by_year[-1].published_year)

    with_pages = [b for b in books if _has_pages(b)]
    if with_pages:
        stats.average_pages = _round_half_up(sum(b.pages for b in with_pages) / len(with_pages))
        # max()/min() return the first of equal candidates
        longest = max(with_pages, key=lambda b: b.pages)
        stats.longest_book = BookPages(title=longest.title, pages=longest.pages)

    positive_pages = [b for b in with_pages if b.pages > 0]
    if positive_pages:
        shortest = min(positive_pages, key=lambda b: b.pages)
        stats.shortest_book = BookPages(title=shortest.title, pages=shortest.pages)

    genres: List[str] = []
    for book in books:
        genre = book.genre
        if isinstance(genre, str) and genre.strip() and genre not in genres:
            genres.append(genre)
    stats.genres = genres

    return stats
