"""
Book Model Module

Book entries for the catalog, their validation and display formatting.
Formatting takes the currency as an argument instead of reading any
global culture settings.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Optional, Tuple

from .currency import Currency, format_money, quantize
from .errors import ValidationError


MAX_PAGES = 0xFFFF


@dataclass(frozen=True)
class Book:
    """
    Book entry persisted by the record store

    The ISBN is the record key. Publication dates are naive datetimes;
    aware values are converted to UTC first.
    """
    isbn: str
    author: str
    title: str
    publisher: str
    publication_date: datetime
    pages: int
    price: Decimal

    def __post_init__(self):
        for name in ("isbn", "author", "title", "publisher"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"The value of {name} is not significant.", key=self._key_hint())

        publication_date = self.publication_date
        if not isinstance(publication_date, datetime):
            if not isinstance(publication_date, date):
                raise ValidationError("Publication date must be a date or datetime", key=self.isbn)
            publication_date = datetime(publication_date.year, publication_date.month, publication_date.day)
        elif publication_date.tzinfo is not None:
            publication_date = publication_date.astimezone(timezone.utc).replace(tzinfo=None)
        object.__setattr__(self, 'publication_date', publication_date)

        if isinstance(self.pages, bool) or not isinstance(self.pages, int) or not 0 <= self.pages <= MAX_PAGES:
            raise ValidationError(f"Pages must be an integer from 0 to {MAX_PAGES}", key=self.isbn)

        price = self.price
        if not isinstance(price, Decimal):
            price = Decimal(str(price))
            object.__setattr__(self, 'price', price)
        if not price.is_finite() or price < 0:
            raise ValidationError("Price cannot be negative.", key=self.isbn)

    def _key_hint(self) -> Optional[str]:
        return self.isbn if isinstance(self.isbn, str) else None

    @property
    def sort_key(self) -> Tuple[str, str]:
        """
        Default catalog ordering: author, then title

        The fields compare separately rather than as one joined string, so
        ("A", "bz") sorts before ("Ab", "c").
        """
        return (self.author, self.title)


_FIELD_FORMATTERS = {
    'I': lambda book, currency: f"ISBN 13: {book.isbn}",
    'A': lambda book, currency: book.author,
    'T': lambda book, currency: book.title,
    'B': lambda book, currency: f'"{book.publisher}"',
    'Y': lambda book, currency: str(book.publication_date.year),
    'P': lambda book, currency: f"P. {book.pages}",
    'C': lambda book, currency: f"{quantize(book.price, currency)}{currency.symbol}",
}


def _general(book: Book, currency: Currency) -> str:
    return (f"{book.title} ({book.publication_date.year}) by {book.author} "
            f"for {format_money(book.price, currency)}")


def _long(book: Book, currency: Currency) -> str:
    published = book.publication_date
    return "\n".join([
        f"ISBN: {book.isbn}",
        f"Author: {book.author}",
        f"Title: {book.title}",
        f"Publisher: {book.publisher}",
        f"Publication date: {published.month}/{published.day}/{published.year}",
        f"Pages: {book.pages}",
        f"Price: {format_money(book.price, currency)}",
    ])


def format_book(book: Book, fmt: Optional[str] = None, currency: Currency = Currency.USD) -> str:
    """
    Format a book for display

    Args:
        book: Book to format
        fmt: ``G`` (or empty) for the one-line summary, ``L`` for the full
            listing, or any combination of the field letters I, A, T, B, Y,
            P and C (case-insensitive) joined by commas
        currency: Currency used to display the price

    Returns:
        Formatted string

    Raises:
        ValidationError: If the format contains an unknown letter
    """
    if not fmt or fmt.upper() == 'G':
        return _general(book, currency)
    if fmt.upper() == 'L':
        return _long(book, currency)

    parts = []
    for letter in fmt:
        formatter = _FIELD_FORMATTERS.get(letter.upper())
        if formatter is None:
            raise ValidationError(f"Invalid format identifier {letter!r}", key=book.isbn)
        parts.append(formatter(book, currency))
    return ", ".join(parts)
