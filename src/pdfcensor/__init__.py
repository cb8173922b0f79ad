# src/pdfcensor/__init__.py
"""
pdfcensor: Remove text from PDF content streams and cover what was removed.

Content streams are parsed with `pdfminer` (which knows where every glyph
lands) and written back with `pikepdf` (which can edit the document).
Every instruction is copied verbatim, except the text draws a
:class:`~pdfcensor.handler.CensorHandler` asks to censor. Pages, forms
and transparency groups are rewritten alike.

Typical use::

    policy = RegexCensorPolicy([Expression(r"\\d{4}", "#f00")], censor_unmatched=False)
    process(pdf, policy)
"""
import logging

from .api import CensorOptions, CensorReport, censor_text, find_object_boxes, process
from .cover_marks import CoverMark, draw_cover_marks
from .errors import (
    CensorError,
    EmptyStreamStackError,
    MalformedContentError,
    MissingXObjectError,
)
from .extractor import BoundingBoxExtractor
from .handler import BaseCensorHandler, CensorHandler, TextRun
from .policy import Expression, Mode, RegexCensorPolicy, parse_hex_color
from .rewriter import SelectiveRewriter
from .stream_stack import StreamFrame, StreamStack
from .utils.pdf_geometry import Rectangle


# pylint: disable=too-few-public-methods
class SuppressFontBBoxWarning(logging.Filter):
    """Suppress a warning from pdfminer"""

    def filter(self, record):
        # Return False to suppress the log, True to allow it
        return (
            "get FontBBox from font descriptor because None cannot be parsed"
            not in record.getMessage()
        )


# Attach filter to the specific logger used by pdfminer.pdffont
logging.getLogger("pdfminer.pdffont").addFilter(SuppressFontBBoxWarning())


__all__ = [
    "process",
    "censor_text",
    "find_object_boxes",
    "draw_cover_marks",
    "CensorOptions",
    "CensorReport",
    "CoverMark",
    "CensorHandler",
    "BaseCensorHandler",
    "TextRun",
    "RegexCensorPolicy",
    "Expression",
    "Mode",
    "parse_hex_color",
    "SelectiveRewriter",
    "BoundingBoxExtractor",
    "StreamStack",
    "StreamFrame",
    "Rectangle",
    "CensorError",
    "EmptyStreamStackError",
    "MalformedContentError",
    "MissingXObjectError",
]
