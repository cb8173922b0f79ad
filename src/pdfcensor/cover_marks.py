# src/pdfcensor/cover_marks.py
"""Draws cover marks over censored areas of a page.

Suppressed text gets a filled box in the colour chosen by the censoring
policy; images and forms get a stroked box with both diagonals.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import pikepdf
from pikepdf import Operator

from .handler import BLACK, Color
from .utils.pdf_geometry import Rectangle

logger = logging.getLogger(__name__)

FILL = "fill"
CROSS = "cross"


@dataclass(frozen=True)
class CoverMark:
    """A rectangle to paint over, with its colour and style."""

    rect: Rectangle
    color: Color = BLACK
    style: str = FILL

    def __post_init__(self):
        if self.style not in (FILL, CROSS):
            raise ValueError(f"Unknown cover mark style: {self.style!r}")


def _ops_for_mark(mark: CoverMark, line_width: float) -> List[Tuple[list, Operator]]:
    r = mark.rect
    box = [r.x, r.y, r.width, r.height]
    if mark.style == FILL:
        return [
            ([*mark.color], Operator("rg")),
            (box, Operator("re")),
            ([], Operator("f")),
        ]
    return [
        ([*mark.color], Operator("RG")),
        ([line_width], Operator("w")),
        (box, Operator("re")),
        ([r.x, r.y], Operator("m")),
        ([r.x1, r.y1], Operator("l")),
        ([r.x, r.y1], Operator("m")),
        ([r.x1, r.y], Operator("l")),
        ([], Operator("S")),
    ]


def cover_mark_instructions(
    marks: Sequence[CoverMark], line_width: float = 2.0
) -> List[Tuple[list, Operator]]:
    """The instructions drawing ``marks``, wrapped in their own ``q``/``Q``."""
    ops: List[Tuple[list, Operator]] = [([], Operator("q"))]
    for mark in marks:
        ops.extend(_ops_for_mark(mark, line_width))
    ops.append(([], Operator("Q")))
    return ops


def draw_cover_marks(
    pdf: pikepdf.Pdf,
    page: pikepdf.Page,
    marks: Sequence[CoverMark],
    line_width: float = 2.0,
) -> None:
    """Appends the marks to ``page``, isolating them from its graphics state.

    The existing content is bracketed with ``q``/``Q`` first, so whatever
    transform or colour it leaves behind cannot shift the marks.
    """
    if not marks:
        return

    page.contents_add(pdf.make_stream(b"q\n"), prepend=True)
    page.contents_add(pdf.make_stream(b"\nQ\n"), prepend=False)
    page.contents_add(
        pdf.make_stream(pikepdf.unparse_content_stream(cover_mark_instructions(marks, line_width))),
        prepend=False,
    )
    logger.debug("Drew %d cover mark(s)", len(marks))
