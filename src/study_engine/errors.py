from __future__ import annotations


class StudyStoreError(Exception):
    """Base class for persistence failures raised by the study store.

    ストレージ層で発生した失敗の基底クラス。コア内部では再試行しないため、
    呼び出し側が再試行するかどうかを判断する。
    """

    def __init__(self, operation: str, message: str | None = None) -> None:
        self.operation = operation
        super().__init__(message or f"{operation} failed")


class StorageUnavailable(StudyStoreError):
    """The store could not be opened (or is already closed)."""


class StorageWriteFailed(StudyStoreError):
    """An append/put/clear did not commit."""


class StorageReadFailed(StudyStoreError):
    """A list/get/query failed."""
