# src/pdfcensor/errors.py
"""Exceptions raised by pdfcensor.

Bookkeeping problems that do not corrupt output (a push outside a
traversal, a stack left non-empty at document end) are logged rather than
raised. Everything here signals a condition that would otherwise produce
a wrong redaction or wrong geometry.
"""


class CensorError(Exception):
    """Base class for pdfcensor errors."""


class EmptyStreamStackError(CensorError, IndexError):
    """A frame was popped while no stream stack was active, or it was empty.

    This always indicates a push/pop mismatch in the caller.
    """


class MissingXObjectError(CensorError, KeyError):
    """A ``Do`` instruction names an XObject absent from the active resources."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f"XObject {self.name} is not defined in the active resources"


class MalformedContentError(CensorError, ValueError):
    """The content stream cannot be interpreted safely."""
