"""
Record Codec Module

Maps records to and from their on-disk byte form. A record has no length
field of its own: its boundaries are found by decoding field by field, and
its width is computed by ``measure`` from the field contents. The store
uses ``measure`` for every offset calculation so the width of a record
has exactly one definition.

Account layout::

    iban | owner | balance (16) | bonus points (4) | tier tag

Book layout::

    isbn | author | title | publisher | date ticks (8) | pages (2) | price (16)

Strings are length-prefixed UTF-8, see ``flatstore.binary``.
"""

import io
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Generic, TypeVar

from .accounts import AccountTier, BankAccount
from .binary import (
    BinaryReader, BinaryWriter, string_size,
    DECIMAL_SIZE, FLOAT_SIZE, INT64_SIZE, UINT16_SIZE
)
from .books import Book
from .errors import CorruptFileError, CorruptionRiskError


R = TypeVar('R')

TICKS_PER_MICROSECOND = 10
TICKS_EPOCH = datetime(1, 1, 1)


def datetime_to_ticks(value: datetime) -> int:
    """100-nanosecond intervals since 0001-01-01T00:00:00"""
    return (value - TICKS_EPOCH) // timedelta(microseconds=1) * TICKS_PER_MICROSECOND


def ticks_to_datetime(ticks: int) -> datetime:
    """Inverse of ``datetime_to_ticks``; sub-microsecond ticks are dropped"""
    if ticks < 0:
        raise ValueError(f"Tick count cannot be negative: {ticks}")
    try:
        return TICKS_EPOCH + timedelta(microseconds=ticks // TICKS_PER_MICROSECOND)
    except OverflowError:
        raise ValueError(f"Tick count {ticks} is beyond the supported date range")


class RecordCodec(ABC, Generic[R]):
    """Encodes, decodes and measures one kind of record"""

    kind: str = "record"

    @abstractmethod
    def key_of(self, record: R) -> str:
        """Return the record's unique key"""
        pass

    @abstractmethod
    def value_of(self, record: R) -> Decimal:
        """Return the value-bearing field reported when a record is removed"""
        pass

    @abstractmethod
    def write(self, writer: BinaryWriter, record: R) -> None:
        """Write all fields of a record, key first"""
        pass

    @abstractmethod
    def read(self, reader: BinaryReader) -> R:
        """Read exactly one record"""
        pass

    @abstractmethod
    def measure(self, record: R) -> int:
        """Exact number of bytes ``write`` produces for the record"""
        pass

    def key_width(self, record: R) -> int:
        """Bytes occupied by the key at the start of the record"""
        return string_size(self.key_of(record))

    def check_rewrite(self, old: R, new: R) -> None:
        """
        Refuse in-place rewrites that would desynchronise the file

        Raises:
            CorruptionRiskError: If the encoded width would change
        """
        old_width, new_width = self.measure(old), self.measure(new)
        if old_width != new_width:
            raise CorruptionRiskError(
                f"Cannot rewrite {self.kind} {self.key_of(new)} in place: "
                f"encoded width changes from {old_width} to {new_width} bytes",
                key=self.key_of(new)
            )

    def encode(self, record: R) -> bytes:
        buffer = io.BytesIO()
        self.write(BinaryWriter(buffer), record)
        return buffer.getvalue()

    def decode(self, data: bytes) -> R:
        """
        Decode a single record occupying all of ``data``

        Raises:
            CorruptFileError: If the bytes are truncated or have trailing data
        """
        buffer = io.BytesIO(data)
        record = self.read(BinaryReader(buffer, len(data)))
        if buffer.tell() != len(data):
            raise CorruptFileError(
                f"{len(data) - buffer.tell()} trailing bytes after {self.kind} record",
                offset=buffer.tell()
            )
        return record


class AccountCodec(RecordCodec[BankAccount]):
    """Codec for bank accounts; the tier tag is the trailing discriminator"""

    kind = "account"

    def key_of(self, record: BankAccount) -> str:
        return record.iban

    def value_of(self, record: BankAccount) -> Decimal:
        return record.balance

    def write(self, writer: BinaryWriter, record: BankAccount) -> None:
        writer.write_string(record.iban)
        writer.write_string(record.owner)
        writer.write_decimal(record.balance)
        writer.write_float(record.bonus_points)
        writer.write_string(record.tier.tag)

    def read(self, reader: BinaryReader) -> BankAccount:
        start = reader.position
        iban = reader.read_string()
        owner = reader.read_string()
        balance = reader.read_decimal()
        bonus_points = reader.read_float()
        tag = reader.read_string()
        try:
            tier = AccountTier.from_tag(tag)
            return BankAccount(iban=iban, owner=owner, balance=balance,
                               bonus_points=bonus_points, tier=tier)
        except ValueError as e:
            raise CorruptFileError(f"Invalid account record: {e}", offset=start, key=iban)

    def measure(self, record: BankAccount) -> int:
        return (
            string_size(record.iban)
            + string_size(record.owner)
            + DECIMAL_SIZE
            + FLOAT_SIZE
            + string_size(record.tier.tag)
        )

    def check_rewrite(self, old: BankAccount, new: BankAccount) -> None:
        if old.tier is not new.tier:
            raise CorruptionRiskError(
                f"Account {new.iban} tier is fixed at {old.tier.tag}; "
                f"cannot rewrite it as {new.tier.tag}",
                key=new.iban
            )
        super().check_rewrite(old, new)


class BookCodec(RecordCodec[Book]):
    """Codec for catalog books"""

    kind = "book"

    def key_of(self, record: Book) -> str:
        return record.isbn

    def value_of(self, record: Book) -> Decimal:
        return record.price

    def write(self, writer: BinaryWriter, record: Book) -> None:
        writer.write_string(record.isbn)
        writer.write_string(record.author)
        writer.write_string(record.title)
        writer.write_string(record.publisher)
        writer.write_int64(datetime_to_ticks(record.publication_date))
        writer.write_uint16(record.pages)
        writer.write_decimal(record.price)

    def read(self, reader: BinaryReader) -> Book:
        start = reader.position
        isbn = reader.read_string()
        author = reader.read_string()
        title = reader.read_string()
        publisher = reader.read_string()
        ticks = reader.read_int64()
        pages = reader.read_uint16()
        price = reader.read_decimal()
        try:
            return Book(isbn=isbn, author=author, title=title, publisher=publisher,
                        publication_date=ticks_to_datetime(ticks), pages=pages, price=price)
        except ValueError as e:
            raise CorruptFileError(f"Invalid book record: {e}", offset=start, key=isbn)

    def measure(self, record: Book) -> int:
        return (
            string_size(record.isbn)
            + string_size(record.author)
            + string_size(record.title)
            + string_size(record.publisher)
            + INT64_SIZE
            + UINT16_SIZE
            + DECIMAL_SIZE
        )
