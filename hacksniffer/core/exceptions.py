"""Custom exception classes for the ingestion pipeline."""

from typing import Optional


class HackSnifferError(Exception):
    """Base exception for all hacksniffer errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class FetchError(HackSnifferError):
    """Raised when a URL cannot be fetched after all retry attempts.

    Scoped to one URL of one source.
    """

    def __init__(
        self,
        source_id: str,
        url: str,
        attempts: int,
        cause: Optional[BaseException] = None,
    ):
        self.source_id = source_id
        self.url = url
        self.attempts = attempts
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(
            f"Failed to fetch {url} for {source_id} after {attempts} attempt(s){detail}"
        )


class ValidationError(HackSnifferError):
    """Raised when a candidate record fails required-field or temporal checks.

    Scoped to a single candidate, never to a whole batch.
    """

    def __init__(self, source_id: str, message: str):
        self.source_id = source_id
        super().__init__(f"Invalid record from {source_id or 'unknown'}: {message}")


class PolitenessError(HackSnifferError):
    """Raised when robots.txt forbids a path an adapter needs to crawl."""

    def __init__(self, source_id: str, path: str):
        self.source_id = source_id
        self.path = path
        super().__init__(f"Path {path} is disallowed by robots.txt for {source_id}")


class StoreError(HackSnifferError):
    """Raised when the record store is unavailable or a write fails.

    This is the only fatal category: it aborts the entire ingestion run.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"Record store {operation} failed: {message}")
