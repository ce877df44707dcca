"""Error kinds raised while resolving Kubernetes metadata for a tag.

Every failure path surfaces as one of these; callers decide whether to pass the
log record through unenriched or drop it.
"""

from __future__ import annotations

from typing import Optional


class KubeMetaError(Exception):
    """Base class for all metadata resolution failures."""


class ParseMismatch(KubeMetaError):
    """The tag does not match the configured pattern."""


class TransportFailure(KubeMetaError):
    """Connection error, HTTP error or non-200 status from the API server."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponse(KubeMetaError):
    """The API server body is not JSON or lacks a usable `metadata` object."""


class CacheUnavailable(KubeMetaError):
    """A metadata cache operation failed."""
