from __future__ import annotations

from typing import Optional, Sequence


class RelayError(Exception):
    """Base exception for schedule retrieval errors."""


class ConfigError(RelayError):
    """Raised at startup when required settings are missing."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required environment variables: {', '.join(self.missing)}")


class AuthError(RelayError):
    """Raised when the client-credentials exchange is rejected.

    ``status_code`` is the token endpoint's HTTP status when a response was
    received; ``body`` is its raw error payload.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        error_code: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        self.error_code = error_code
        super().__init__(message)


class NotFoundError(RelayError):
    """Raised when a lookup exhausted every candidate."""


class SiteNotFoundError(NotFoundError):
    """Raised when no candidate site resolved."""

    def __init__(self, candidates: Sequence[str]):
        self.candidates = list(candidates)
        probed = ", ".join(repr(c) if c else "<root>" for c in self.candidates)
        super().__init__(f"Failed to resolve any SharePoint site (tried {probed})")


class ResourceNotFoundError(NotFoundError):
    """Raised when the file was not found after the full cascade."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f'File "{file_name}" not found in any SharePoint drives')


class DownloadError(RelayError):
    """Raised when a resolved handle could not be fetched."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class PipelineTimeoutError(RelayError):
    """Raised when a pipeline run exceeds its deadline."""
