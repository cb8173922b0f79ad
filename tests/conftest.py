# tests/conftest.py

import binascii

import pytest

from .helpers import make_form, make_image, make_pdf, page_content

##########
# FIXTURES
##########


@pytest.fixture
def create_pdf():
    """Factory fixture to create a simple 1-page PDF with specific content instructions.

    The page has a Helvetica font as ``/F1``.
    """
    return make_pdf


@pytest.fixture
def create_image():
    """Factory fixture for a 1x1 image XObject; ``stencil=True`` for a mask."""
    return make_image


@pytest.fixture
def create_form():
    """Factory fixture for a form XObject (or transparency group)."""
    return make_form


@pytest.fixture
def read_page():
    """Returns the (single, rewritten) content stream of a page."""
    return page_content


@pytest.fixture
def assert_stream_contains():
    """
    Returns a function that checks if a PDF content stream contains a specific
    text/operator combination, handling both Literal (foo) and Hex <666f6f> formats.

    Usage:
        assert_stream_contains(pdf_bytes, "Hello", "Tj")
    """

    def _check(stream_bytes: bytes, text: str, op: str = "Tj"):
        # 1. Literal Format: (Hello) Tj
        literal = f"({text}) {op}".encode("ascii")

        # 2. Hex Format: <48656c6c6f> Tj
        hex_val = binascii.hexlify(text.encode("ascii")).decode("ascii")
        hex_fmt = f"<{hex_val}> {op}".encode("ascii")

        # Check if either exists in the stream
        if literal in stream_bytes:
            return True
        if hex_fmt in stream_bytes:
            return True

        # Failure message
        raise AssertionError(
            f"Content not found.\n"
            f"Expected: {literal} OR {hex_fmt}\n"
            f"Found:    {stream_bytes}"
        )

    return _check
