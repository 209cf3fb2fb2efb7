"""
Book Catalog Service Module

Keeps a catalog of books in memory. The catalog is loaded from its store
in one pass and written back as a whole by ``save``.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Union

from .books import Book
from .errors import DuplicateKeyError, NotFoundError
from .logging_config import get_logger, log_action
from .storage import RecordStorage


class BookCriteria(ABC):
    """Base class for reusable book search criteria"""

    @abstractmethod
    def is_eligible(self, book: Book) -> bool:
        """Check whether a book matches"""
        pass


class ByAuthor(BookCriteria):
    """Matches books by exact author name"""

    def __init__(self, author: str):
        self.author = author

    def is_eligible(self, book: Book) -> bool:
        return book.author == self.author


class ByTitleContains(BookCriteria):
    """Matches books whose title contains a fragment (case-insensitive)"""

    def __init__(self, fragment: str):
        self.fragment = fragment.lower()

    def is_eligible(self, book: Book) -> bool:
        return self.fragment in book.title.lower()


Criteria = Union[BookCriteria, Callable[[Book], bool]]


def _predicate(criteria: Criteria) -> Callable[[Book], bool]:
    if isinstance(criteria, BookCriteria):
        return criteria.is_eligible
    return criteria


class BookListService:
    """
    Catalog of books keyed by ISBN, in insertion or last sort order
    """

    def __init__(self, storage: RecordStorage[Book]):
        self.storage = storage
        self.logger = get_logger("flatstore.catalog")
        self._books: Dict[str, Book] = {}
        for book in storage.load_all():
            self._books[book.isbn] = book
        self.logger.debug(f"Loaded {len(self._books)} books")

    @property
    def books(self) -> List[Book]:
        """Books in current catalog order"""
        return list(self._books.values())

    def __len__(self) -> int:
        return len(self._books)

    def __contains__(self, isbn: str) -> bool:
        return isbn in self._books

    def add_book(self, book: Book) -> None:
        """
        Add a book to the catalog

        Raises:
            DuplicateKeyError: If a book with the same ISBN is present
        """
        if book.isbn in self._books:
            raise DuplicateKeyError(
                book.isbn, f"The book list already contains a book with ISBN {book.isbn}."
            )
        self._books[book.isbn] = book
        log_action(self.logger, "info", "Book added", action="add_book",
                   resource=f"book:{book.isbn}")

    def remove_book(self, book: Union[Book, str]) -> Book:
        """
        Remove a book, given the book itself or its ISBN

        Returns:
            The removed book

        Raises:
            NotFoundError: If no book has the ISBN
        """
        isbn = book.isbn if isinstance(book, Book) else book
        if isbn not in self._books:
            raise NotFoundError(isbn, f"The book list does not contain a book with ISBN {isbn}.")
        removed = self._books.pop(isbn)
        log_action(self.logger, "info", "Book removed", action="remove_book",
                   resource=f"book:{isbn}")
        return removed

    def find_book(self, criteria: Criteria) -> Optional[Book]:
        """Return the first book matching the criteria, or None"""
        matches = _predicate(criteria)
        for book in self._books.values():
            if matches(book):
                return book
        return None

    def find_books(self, criteria: Criteria) -> List[Book]:
        """Return every book matching the criteria"""
        matches = _predicate(criteria)
        return [book for book in self._books.values() if matches(book)]

    def sort_books(self, key: Optional[Callable[[Book], object]] = None, reverse: bool = False) -> None:
        """Reorder the catalog; by author and title unless a key is given"""
        ordered = sorted(self._books.values(), key=key or (lambda book: book.sort_key), reverse=reverse)
        self._books = {book.isbn: book for book in ordered}

    def save(self) -> None:
        """Write the whole catalog back to storage"""
        self.storage.save_all(self._books.values())
        log_action(self.logger, "info", "Catalog saved", action="save_catalog",
                   extra={"books": len(self._books)})
