"""
Error taxonomy for the crawl pipeline.

Stage-local errors (PageError, StorageError, ImageFetchError) are caught
by the orchestrator at the stage boundary. FatalError ends the run.
"""

from __future__ import annotations


class CardlistError(Exception):
    """Base class for all classified pipeline errors."""


class PageError(CardlistError):
    """Navigation, element-wait or DOM evaluation failed for a page."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class StorageError(CardlistError):
    """A statement against the catalog store failed."""

    def __init__(self, operation: str, payload: str, reason: str) -> None:
        super().__init__(f"{operation} failed ({payload}): {reason}")
        self.operation = operation
        self.payload = payload
        self.reason = reason


class ImageFetchError(CardlistError):
    """Downloading or writing one image failed."""

    def __init__(self, cid: int, url: str, reason: str) -> None:
        super().__init__(f"cid={cid} {url}: {reason}")
        self.cid = cid
        self.url = url
        self.reason = reason


class FatalError(CardlistError):
    """The run cannot continue."""
