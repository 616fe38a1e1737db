# variant_ga/exceptions.py
"""Exceptions raised by the variant-evolving genetic algorithm."""

from typing import Optional


class VariantGAError(Exception):
    """Base class for all errors raised by this package."""


class InvalidCorpusError(VariantGAError, ValueError):
    """
    The reference corpus cannot be used: it is empty, a piece is malformed,
    a reference contains no sounding note, or the chunk sizes cannot be
    equalized to a common resolution.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source is not None:
            message = f"{source}: {message}"
        super().__init__(message)


class ChromosomeError(VariantGAError, ValueError):
    """A chromosome operation was called with arguments that break its preconditions."""
