"""Custom exceptions for optimize events retrieval."""
from typing import Optional


class OptimizeEventsException(Exception):
    """Base exception for optimize events retrieval."""
    pass


class InvalidArgumentError(OptimizeEventsException):
    """Request arguments failed validation before any query was issued."""
    pass


class RemoteQueryError(OptimizeEventsException):
    """UQL query execution or continuation failed."""

    def __init__(self, message: str, page: Optional[int] = None, cause: Optional[BaseException] = None):
        self.page = page
        self.cause = cause
        if page is not None:
            message = f"page {page} {message}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class DataShapeError(OptimizeEventsException):
    """A page, row or attribute did not have the expected shape."""

    def __init__(
        self,
        message: str,
        page: Optional[int] = None,
        row: Optional[int] = None,
        dataset: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ):
        self.page = page
        self.row = row
        self.dataset = dataset
        self.expected = expected
        self.actual = actual

        context = []
        if page is not None:
            context.append(f"page {page}")
        if dataset:
            context.append(f"dataset {dataset}")
        if row is not None:
            context.append(f"row {row}")
        if context:
            message = f"{' '.join(context)}: {message}"
        if expected is not None:
            message = f"{message} (expected {expected}, got {actual})"
        super().__init__(message)
