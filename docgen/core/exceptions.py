"""Custom exceptions for docgen."""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds, each mapped to an HTTP status."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BROWSER = "browser"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    EMBEDDING = "embedding"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BROWSER: 500,
    ErrorKind.DATABASE: 500,
    ErrorKind.EXTERNAL_API: 502,
    ErrorKind.EMBEDDING: 500,
}


class DocgenError(Exception):
    """Base exception for docgen."""

    kind: ErrorKind = ErrorKind.DATABASE

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context = context or {}

    @property
    def status_code(self) -> int:
        return self.kind.status_code


class ValidationError(DocgenError):
    """Bad input (not Pydantic)."""

    kind = ErrorKind.VALIDATION


class NotFoundError(DocgenError):
    """No site or resources for a URL."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str, context: Optional[dict[str, Any]] = None):
        super().__init__(f"{resource} not found: {identifier}", context=context)
        self.resource = resource
        self.identifier = identifier


class BrowserError(DocgenError):
    """Browser automation failure."""

    kind = ErrorKind.BROWSER

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Browser automation failed: {message}", cause)


class DatabaseError(DocgenError):
    """Persistence failure."""

    kind = ErrorKind.DATABASE

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Database operation failed: {message}", cause)


class ExternalAPIError(DocgenError):
    """LLM / provider failure."""

    kind = ErrorKind.EXTERNAL_API

    def __init__(self, service: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{service} API error: {message}", cause)
        self.service = service


class EmbeddingError(DocgenError):
    """Vector computation failure."""

    kind = ErrorKind.EMBEDDING

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"Embedding generation failed: {message}", cause)


class JobFailedError(DocgenError):
    """A queue job exhausted its retry attempts."""

    def __init__(self, job_id: str, reason: str):
        super().__init__(f"Job {job_id} failed: {reason}", context={"job_id": job_id})
        self.job_id = job_id
        self.reason = reason
