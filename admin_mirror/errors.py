from __future__ import annotations


class MirrorError(Exception):
    pass


class UpstreamUnavailable(MirrorError):
    """Non-2xx answer or network failure while talking to the upstream service."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = '',
        fallback: str = 'api fail',
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        # Shown to the admin caller when upstream sent no body text.
        self.fallback = fallback


class ValidationError(MirrorError, ValueError):
    """A required field is missing; raised before any I/O happens."""


class StorageError(MirrorError):
    """The mirror database rejected a statement. Safe to retry."""
