# src/pdfcensor/policy.py
"""Module: pdfcensor.policy

A ready-made :class:`~pdfcensor.handler.CensorHandler` driven by a list of
regular expressions, each with the colour its matches are covered in.

Text is matched across run boundaries: every run is appended to a buffer
holding the page's text so far, and a run is censored when a match in that
buffer overlaps it. A match that is only completed by a later run cannot
reach back to runs already decided.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Union

import numpy as np
import pikepdf

from .handler import BLACK, BaseCensorHandler, Color, TextRun
from .utils.pdf_geometry import Rectangle, bounding_rect

logger = logging.getLogger(__name__)

FALLBACK_PATTERN = "."

_HEX_COLOR = re.compile(r"^(?:#|0x)([0-9a-f]{3}|[0-9a-f]{6})$", re.IGNORECASE)


def parse_hex_color(value: str) -> Color:
    """Parses ``#rgb``, ``#rrggbb`` or ``0xrrggbb`` into RGB floats in [0, 1]."""
    match = _HEX_COLOR.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Not a hex colour: {value!r}")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return tuple(int(digits[i : i + 2], 16) / 255.0 for i in (0, 2, 4))  # type: ignore[return-value]


@dataclass(frozen=True)
class Expression:
    """A regular expression and the colour its matches are covered with.

    Attributes:
        pattern (str): Python ``re`` syntax.
        color (Optional[Color]): RGB in [0, 1]. ``None`` until a default
            colour is assigned.
    """

    pattern: str
    color: Optional[Color] = None
    regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if isinstance(self.color, str):
            object.__setattr__(self, "color", parse_hex_color(self.color))
        try:
            object.__setattr__(self, "regex", re.compile(self.pattern))
        except re.error as e:
            raise ValueError(f"Invalid expression {self.pattern!r}: {e}") from e


class Mode(Enum):
    """Which text is eligible for censoring."""

    ALL = "all"
    MARKED = "marked"
    UNMARKED = "unmarked"


def load_highlights(page: pikepdf.Page) -> List[Rectangle]:
    """Areas covered by the page's highlight annotations."""
    rects: List[Rectangle] = []
    for annot in page.obj.get("/Annots", None) or []:
        if not isinstance(annot, pikepdf.Dictionary) or annot.get("/Subtype") != "/Highlight":
            continue
        quads = [float(v) for v in annot.get("/QuadPoints", None) or []]
        if len(quads) >= 8:
            for i in range(0, len(quads) - 7, 8):
                points = np.array(quads[i : i + 8]).reshape(4, 2)
                rects.append(bounding_rect(points, "highlight"))
        elif "/Rect" in annot:
            points = np.array([float(v) for v in annot.Rect]).reshape(2, 2)
            rects.append(bounding_rect(points, "highlight"))
    return rects


class RegexCensorPolicy(BaseCensorHandler):
    """Censors text matched by any of ``expressions``.

    Args:
        expressions: :class:`Expression` objects or plain patterns. Earlier
            expressions win when several match the same run.
        mode: Restricts censoring to highlighted (``MARKED``) or
            non-highlighted (``UNMARKED``) text.
        censor_unmatched: Append a catch-all ``.`` expression in black,
            so that every eligible run is censored.
        default_colors: Handed out in order to expressions without a
            colour. Expressions left over are covered in black.
    """

    def __init__(
        self,
        expressions: Iterable[Union[Expression, str]] = (),
        mode: Mode = Mode.ALL,
        censor_unmatched: bool = True,
        default_colors: Sequence[Color] = (),
    ):
        self.mode = Mode(mode)
        self.expressions = self._assign_colors(
            [e if isinstance(e, Expression) else Expression(e) for e in expressions],
            list(default_colors),
        )
        if censor_unmatched:
            self.expressions.append(Expression(FALLBACK_PATTERN, BLACK))

        self._pdf: Optional[pikepdf.Pdf] = None
        self._text = ""
        self._resume: List[int] = [0] * len(self.expressions)
        self._highlights: List[Rectangle] = []
        self._run_colors: Dict[TextRun, Color] = {}

    @staticmethod
    def _assign_colors(
        expressions: List[Expression], default_colors: List[Color]
    ) -> List[Expression]:
        colors = iter(default_colors)
        assigned = []
        for expr in expressions:
            if expr.color is None:
                expr = replace(expr, color=next(colors, BLACK))
            assigned.append(expr)
        return assigned

    @property
    def page_text(self) -> str:
        return self._text

    def on_begin_document(self, pdf: pikepdf.Pdf) -> None:
        self._pdf = pdf

    def on_begin_page(self, page_number: int, page_count: int) -> None:
        self._text = ""
        self._resume = [0] * len(self.expressions)
        self._run_colors = {}
        self._highlights = []
        if self.mode is not Mode.ALL and self._pdf is not None:
            self._highlights = load_highlights(self._pdf.pages[page_number - 1])
            logger.debug(
                "Page %d has %d highlighted area(s)", page_number, len(self._highlights)
            )

    def on_end_document(self, pdf: pikepdf.Pdf) -> None:
        self._pdf = None

    def is_eligible(self, run: TextRun) -> bool:
        if self.mode is Mode.ALL:
            return True
        marked = any(run.rect.intersects(h) for h in self._highlights)
        return marked if self.mode is Mode.MARKED else not marked

    def should_censor(self, run: TextRun) -> bool:
        start = len(self._text)
        self._text += run.text
        end = len(self._text)

        if start == end or not self.is_eligible(run):
            return False

        for index, expr in enumerate(self.expressions):
            # Resume at the last match seen; it may extend into this run
            for match in expr.regex.finditer(self._text, self._resume[index]):
                if match.start() >= end:
                    break
                self._resume[index] = match.start()
                if max(match.end(), match.start() + 1) > start:
                    self._run_colors[run] = expr.color or BLACK
                    return True
        return False

    def cover_color(self, run: TextRun) -> Color:
        return self._run_colors.get(run, BLACK)
