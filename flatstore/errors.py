"""
Error Types Module

Exceptions raised by the codec, the record store and the services.
Business-rule violations subclass ValueError and missing keys subclass
KeyError so callers can keep catching the builtin types.
"""

from typing import Optional


class FlatstoreError(Exception):
    """Base class for all flatstore errors"""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        return self.message


class ValidationError(FlatstoreError, ValueError):
    """A caller-supplied value violates a business rule"""


class NotFoundError(FlatstoreError, KeyError):
    """No record with the requested key exists"""

    def __init__(self, key: str, message: Optional[str] = None):
        super().__init__(message or f"Record with key {key} not found", key=key)


class DuplicateKeyError(FlatstoreError, ValueError):
    """A record with the same key is already stored"""

    def __init__(self, key: str, message: Optional[str] = None):
        super().__init__(message or f"Record with key {key} already exists", key=key)


class CorruptionRiskError(FlatstoreError):
    """An in-place rewrite would shift the bytes of following records"""


class CorruptFileError(FlatstoreError):
    """Stored bytes cannot be decoded into a record"""

    def __init__(self, message: str, offset: Optional[int] = None, key: Optional[str] = None):
        super().__init__(message, key=key)
        self.offset = offset
