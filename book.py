from __future__ import annotations

from typing import List, Optional


class Book:
    """Represents a single title in the fixed catalog."""

    def __init__(self, book_id: int, title: str, author: str) -> None:
        self.id = book_id
        self.title = title.strip()
        self.author = author.strip()

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author}"

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "author": self.author}


_CATALOG_ROWS = [
    (1, "Clean Code", "Robert C. Martin"),
    (2, "The Pragmatic Programmer", "Andrew Hunt"),
    (3, "Design Patterns", "Erich Gamma"),
    (4, "Eloquent JavaScript", "Marijn Haverbeke"),
    (5, "Refactoring", "Martin Fowler"),
    (6, "Effective Java", "Joshua Bloch"),
    (7, "You Don’t Know JS", "Kyle Simpson"),
    (8, "Operating System Concepts", "Silberschatz"),
    (9, "Computer Networks", "Tanenbaum"),
    (10, "Cracking the Coding Interview", "Gayle McDowell"),
    (11, "Database System Concepts", "Abraham Silberschatz"),
    (12, "Artificial Intelligence", "Stuart Russell"),
    (13, "The Mythical Man-Month", "Frederick Brooks"),
    (14, "Head First Design Patterns", "Eric Freeman"),
    (15, "Introduction to Algorithms", "Cormen"),
    (16, "JavaScript: The Good Parts", "Douglas Crockford"),
    (17, "Domain-Driven Design", "Eric Evans"),
    (18, "The Clean Coder", "Robert C. Martin"),
    (19, "Code Complete", "Steve McConnell"),
    (20, "Programming Pearls", "Jon Bentley"),
]

CATALOG: tuple = tuple(Book(book_id, title, author) for book_id, title, author in _CATALOG_ROWS)


def list_books() -> List[Book]:
    return list(CATALOG)


def find_book(book_id: int) -> Optional[Book]:
    for book in CATALOG:
        if book.id == book_id:
            return book
    return None


def find_book_by_title(title: Optional[str]) -> Optional[Book]:
    """Exact title match, ignoring surrounding whitespace."""
    if title is None:
        return None
    wanted = title.strip()
    if not wanted:
        return None
    for book in CATALOG:
        if book.title == wanted:
            return book
    return None
