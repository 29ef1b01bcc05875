from __future__ import annotations

from pathlib import Path


class WebArchiveError(Exception):
    """Base error for all user-facing webarchivum exceptions."""


class ConfigurationError(WebArchiveError):
    """Raised when configuration is invalid or incomplete."""


class DocumentError(WebArchiveError):
    """Base for decode failures; carries where in the document and which file."""

    def __init__(self, reason: str, location: str | None = None, source: Path | None = None) -> None:
        self.reason = reason
        self.location = location
        self.source = source
        message = f"{location}: {reason}" if location else reason
        if source is not None:
            message = f"{source}: {message}"
        super().__init__(message)

    def with_source(self, source: Path) -> DocumentError:
        return type(self)(self.reason, self.location, source)


class SchemaError(DocumentError):
    """Raised when a document does not have the shape of a web archive."""


class DocumentFormatError(SchemaError):
    """Raised when input bytes are not a property list at all."""


class EncodingError(DocumentError):
    """Raised when a binary payload cannot be materialized."""


class ArchiveIOError(WebArchiveError):
    """Raised when reading or writing files fails."""

    def __init__(self, message: str, path: Path | None = None, url: str | None = None) -> None:
        self.path = path
        self.url = url
        details = []
        if path is not None:
            details.append(f"path={path}")
        if url is not None:
            details.append(f"url={url}")
        super().__init__(f"{message} ({', '.join(details)})" if details else message)


class UnsafePathError(ArchiveIOError):
    """Raised when a resource URL would be written outside the destination directory."""
