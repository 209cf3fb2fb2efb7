"""
Storage Backend Module

Provides the abstract record storage interface and two implementations:
in-memory (testing) and a flat binary file with no index.

The binary file is a plain concatenation of encoded records. Every
operation opens the file, scans from the start, and closes it again; no
position or cache survives between calls. Deleting a record shifts all
following bytes left over it and truncates the file, so the file stays
densely packed.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from pathlib import Path
from typing import BinaryIO, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar, Union
import os

from .binary import BinaryReader
from .accounts import BankAccount
from .books import Book
from .codec import AccountCodec, BookCodec, RecordCodec
from .config import FlatstoreConfig, get_config
from .errors import CorruptFileError, DuplicateKeyError, NotFoundError
from .logging_config import get_logger


R = TypeVar('R')


class RecordStorage(ABC, Generic[R]):
    """Abstract interface for keyed record storage"""

    def __init__(self, codec: RecordCodec[R]):
        self.codec = codec

    @abstractmethod
    def add(self, record: R) -> None:
        """Store a new record; its key must not be present"""
        pass

    @abstractmethod
    def get(self, key: str) -> R:
        """Load the record with the given key"""
        pass

    @abstractmethod
    def remove(self, key: str) -> Decimal:
        """Delete a record and return its value-bearing field"""
        pass

    @abstractmethod
    def save(self, record: R) -> None:
        """Rewrite an existing record in place"""
        pass

    @abstractmethod
    def load_all(self) -> List[R]:
        """Load every record in storage order"""
        pass

    @abstractmethod
    def save_all(self, records: Iterable[R]) -> None:
        """Replace the whole storage content"""
        pass

    def replace(self, record: R) -> None:
        """Rewrite a record whose encoded width may have changed"""
        self.remove(self.codec.key_of(record))
        self.add(record)

    def exists(self, key: str) -> bool:
        """Check if a record exists"""
        try:
            self.get(key)
        except NotFoundError:
            return False
        return True

    def count(self) -> int:
        """Count stored records"""
        return len(self.load_all())

    def clear(self) -> None:
        """Remove all records"""
        self.save_all([])

    def _unique(self, records: Iterable[R]) -> List[R]:
        seen = set()
        result = []
        for record in records:
            key = self.codec.key_of(record)
            if key in seen:
                raise DuplicateKeyError(key)
            seen.add(key)
            result.append(record)
        return result


class InMemoryStorage(RecordStorage[R]):
    """
    In-memory storage implementation for testing

    Records are kept encoded so callers never share mutable state with the
    store, and the same width rules apply as for the binary file.
    """

    def __init__(self, codec: RecordCodec[R]):
        super().__init__(codec)
        self._data: Dict[str, bytes] = {}

    def add(self, record: R) -> None:
        key = self.codec.key_of(record)
        if key in self._data:
            raise DuplicateKeyError(key)
        self._data[key] = self.codec.encode(record)

    def get(self, key: str) -> R:
        if key not in self._data:
            raise NotFoundError(key)
        return self.codec.decode(self._data[key])

    def remove(self, key: str) -> Decimal:
        record = self.get(key)
        del self._data[key]
        return self.codec.value_of(record)

    def save(self, record: R) -> None:
        key = self.codec.key_of(record)
        old = self.get(key)
        self.codec.check_rewrite(old, record)
        self._data[key] = self.codec.encode(record)

    def load_all(self) -> List[R]:
        return [self.codec.decode(data) for data in self._data.values()]

    def save_all(self, records: Iterable[R]) -> None:
        records = self._unique(records)
        encoded = {self.codec.key_of(r): self.codec.encode(r) for r in records}
        self._data = encoded

    def count(self) -> int:
        return len(self._data)


class BinaryFileStorage(RecordStorage[R]):
    """Flat binary file storage located by linear scan"""

    def __init__(self, path: Union[str, Path], codec: RecordCodec[R]):
        super().__init__(codec)
        self.path = Path(path)
        self.logger = get_logger("flatstore.storage")
        if not self.path.exists():
            self.path.touch()
            self.logger.info(f"Created empty {codec.kind} file {self.path}")

    def _entries(self, stream: BinaryIO) -> Iterator[Tuple[int, R]]:
        """Yield (offset, record) pairs from the current position to EOF"""
        size = os.fstat(stream.fileno()).st_size
        reader = BinaryReader(stream, size)
        while reader.position < size:
            start = reader.position
            record = self.codec.read(reader)
            width = reader.position - start
            expected = self.codec.measure(record)
            if width != expected:
                raise CorruptFileError(
                    f"{self.codec.kind} {self.codec.key_of(record)} occupies {width} bytes, "
                    f"expected {expected}",
                    offset=start, key=self.codec.key_of(record)
                )
            yield start, record

    def _locate(self, stream: BinaryIO, key: str) -> Tuple[int, R]:
        for offset, record in self._entries(stream):
            if self.codec.key_of(record) == key:
                return offset, record
        self.logger.debug(f"Scanned {self.path} without finding {self.codec.kind} {key}")
        raise NotFoundError(key)

    def add(self, record: R) -> None:
        """
        Append a record to the end of the file

        Raises:
            DuplicateKeyError: If a record with the same key is stored
        """
        data = self.codec.encode(record)
        key = self.codec.key_of(record)
        with open(self.path, "r+b") as stream:
            for _, existing in self._entries(stream):
                if self.codec.key_of(existing) == key:
                    raise DuplicateKeyError(key)
            stream.seek(0, os.SEEK_END)
            stream.write(data)
        self.logger.info(f"Added {self.codec.kind} {key} ({len(data)} bytes)")

    def get(self, key: str) -> R:
        """
        Find a record by scanning from the start of the file

        Raises:
            NotFoundError: If no record has the key
        """
        with open(self.path, "rb") as stream:
            _, record = self._locate(stream, key)
        return record

    def remove(self, key: str) -> Decimal:
        """
        Excise a record and close the gap

        Every byte after the record is read, written back at the record's
        offset, and the file is truncated to its new length.

        Returns:
            The value-bearing field of the removed record

        Raises:
            NotFoundError: If no record has the key
        """
        with open(self.path, "r+b") as stream:
            offset, record = self._locate(stream, key)
            width = self.codec.measure(record)
            stream.seek(offset + width)
            trailing = stream.read()
            stream.seek(offset)
            stream.write(trailing)
            stream.truncate()
        self.logger.info(
            f"Removed {self.codec.kind} {key} at offset {offset}, "
            f"shifted {len(trailing)} bytes left by {width}"
        )
        return self.codec.value_of(record)

    def save(self, record: R) -> None:
        """
        Overwrite a record's payload in place; the key bytes are kept

        Raises:
            NotFoundError: If no record has the key
            CorruptionRiskError: If the encoded width or tier would change
        """
        data = self.codec.encode(record)
        key = self.codec.key_of(record)
        with open(self.path, "r+b") as stream:
            offset, old = self._locate(stream, key)
            self.codec.check_rewrite(old, record)
            key_width = self.codec.key_width(old)
            stream.seek(offset + key_width)
            stream.write(data[key_width:])
        self.logger.info(f"Saved {self.codec.kind} {key} at offset {offset}")

    def load_all(self) -> List[R]:
        with open(self.path, "rb") as stream:
            return [record for _, record in self._entries(stream)]

    def save_all(self, records: Iterable[R]) -> None:
        """
        Overwrite the whole file with the given records

        Raises:
            DuplicateKeyError: If two records share a key; the file is untouched
        """
        records = self._unique(records)
        data = b"".join(self.codec.encode(record) for record in records)
        with open(self.path, "wb") as stream:
            stream.write(data)
        self.logger.info(f"Wrote {len(records)} {self.codec.kind} records to {self.path}")

    def size(self) -> int:
        """Current file length in bytes"""
        return self.path.stat().st_size


def open_account_storage(config: Optional[FlatstoreConfig] = None) -> BinaryFileStorage[BankAccount]:
    """Binary account store at the configured path"""
    if config is None:
        config = get_config()
    return BinaryFileStorage(config.accounts_path, AccountCodec())


def open_book_storage(config: Optional[FlatstoreConfig] = None) -> BinaryFileStorage[Book]:
    """Binary book store at the configured path"""
    if config is None:
        config = get_config()
    return BinaryFileStorage(config.books_path, BookCodec())
