"""Error taxonomy for the lab search workflow.

Every failure raised on purpose inside the workflow derives from
``LabConnectError``; its message is what the page shows in the error banner.
"""
from __future__ import annotations


class LabConnectError(Exception):
    """Base class for failures that end a search with a readable message."""


class ValidationError(LabConnectError):
    """The request is unusable before any work starts (e.g. no image chosen)."""


class ImageReadError(LabConnectError):
    """The uploaded file could not be read or decoded as an image."""


class UpstreamError(LabConnectError):
    """An external service (table store or model API) failed."""


class DatabaseError(UpstreamError):
    pass


class ModelError(UpstreamError):
    pass


class ResponseFormatError(LabConnectError):
    """The model replied, but not in the expected text format."""


class NoLabsError(LabConnectError):
    def __init__(self, message: str = "No labs found") -> None:
        super().__init__(message)
