# src/pdfcensor/utils/pdf_geometry.py
"""
Geometry utilities turning PDF transforms and font metrics into page-space
rectangles.

All matrices follow the pdfminer convention: a 6-tuple ``[a, b, c, d, e, f]``
standing for the row-vector matrix ``[[a, b, 0], [c, d, 0], [e, f, 1]]``,
so a point maps as ``[x, y, 1] @ M``.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .pdf_conversion import miner_matrix_to_np

# Vertical extent (as a fraction of the font size) assumed when a font does
# not report ascent/descent.
DEFAULT_DESCENT = -0.2
DEFAULT_ASCENT = 0.8

UNIT_SQUARE = ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0))


@dataclass(frozen=True)
class Rectangle:
    """An axis-aligned box in page (default user space) coordinates.

    Attributes:
        x (float): Lower-left x.
        y (float): Lower-left y.
        width (float): Extent along x. Never negative.
        height (float): Extent along y. Never negative.
        owner (Optional[str]): What the box bounds (an XObject name, or the
            text of a run). Ignored by equality.
    """

    x: float
    y: float
    width: float
    height: float
    owner: Optional[str] = field(default=None, compare=False)

    @property
    def x1(self) -> float:
        return self.x + self.width

    @property
    def y1(self) -> float:
        return self.y + self.height

    def corners(self) -> List[Tuple[float, float]]:
        return [(self.x, self.y), (self.x1, self.y), (self.x1, self.y1), (self.x, self.y1)]

    def intersects(self, other: "Rectangle") -> bool:
        """True if the two boxes share a region of positive area."""
        return (
            min(self.x1, other.x1) > max(self.x, other.x)
            and min(self.y1, other.y1) > max(self.y, other.y)
        )

    def rounded(self, places: int = 4) -> "Rectangle":
        return Rectangle(
            round(self.x, places),
            round(self.y, places),
            round(self.width, places),
            round(self.height, places),
            self.owner,
        )


def transform_points(
    points: Iterable[Sequence[float]], matrix: Sequence
) -> np.ndarray:
    """Maps (x, y) points through a matrix. Returns an (N, 2) array."""
    pts = np.array([[p[0], p[1], 1.0] for p in points], dtype=float)
    if pts.size == 0:
        return np.zeros((0, 2))
    return (pts @ miner_matrix_to_np(matrix))[:, :2]


def bounding_rect(points: np.ndarray, owner: Optional[str] = None) -> Rectangle:
    """Smallest axis-aligned rectangle containing all ``points``."""
    if len(points) == 0:
        raise ValueError("Cannot bound an empty point set")
    x0, y0 = points.min(axis=0)
    x1, y1 = points.max(axis=0)
    return Rectangle(float(x0), float(y0), float(x1 - x0), float(y1 - y0), owner)


def unit_square_rect(ctm: Sequence, owner: Optional[str] = None) -> Rectangle:
    """Page-space bounds of an image: the unit square mapped through the CTM."""
    return bounding_rect(transform_points(UNIT_SQUARE, ctm), owner)


def transform_rect(rect: Rectangle, matrix: Sequence) -> Rectangle:
    """Bounds of ``rect`` after mapping its corners through ``matrix``."""
    return bounding_rect(transform_points(rect.corners(), matrix), rect.owner)


def form_rect(
    bbox: Sequence[float],
    form_matrix: Sequence,
    ctm: Sequence,
    owner: Optional[str] = None,
) -> Rectangle:
    """Page-space bounds of a form XObject.

    The form's declared /BBox lives in form space; /Matrix maps form space
    into the user space current at the ``Do``, and the CTM takes it to the
    page.
    """
    x0, y0, x1, y1 = (float(v) for v in bbox)
    corners = ((x0, y0), (x1, y0), (x1, y1), (x0, y1))
    full = miner_matrix_to_np(form_matrix) @ miner_matrix_to_np(ctm)
    return bounding_rect(transform_points(corners, full), owner)


def text_run_rect(
    x_offset: float,
    width: float,
    descent: float,
    ascent: float,
    rise: float,
    text_matrix: Sequence,
    ctm: Sequence,
    owner: Optional[str] = None,
) -> Rectangle:
    """Page-space bounds of a run of glyphs.

    Args:
        x_offset: Start of the run along the baseline, in unscaled text
            space units, relative to the text matrix origin.
        width: Advance of the run in the same units (already scaled by
            font size and horizontal scaling).
        descent: Lowest extent below the baseline (negative), scaled by
            font size.
        ascent: Highest extent above the baseline, scaled by font size.
        rise: Text rise (``Ts``).
        text_matrix: The text matrix ``Tm`` at the start of the instruction.
        ctm: The current transformation matrix.
    """
    x0, x1 = sorted((x_offset, x_offset + width))
    y0, y1 = descent + rise, ascent + rise
    corners = ((x0, y0), (x1, y0), (x1, y1), (x0, y1))
    full = miner_matrix_to_np(text_matrix) @ miner_matrix_to_np(ctm)
    return bounding_rect(transform_points(corners, full), owner)


def font_extent(font: Any, fontsize: float) -> Tuple[float, float]:
    """(descent, ascent) of ``font`` in text space units at ``fontsize``."""
    descent = float(font.get_descent()) if hasattr(font, "get_descent") else 0.0
    ascent = float(font.get_ascent()) if hasattr(font, "get_ascent") else 0.0
    if ascent <= descent:
        descent, ascent = DEFAULT_DESCENT, DEFAULT_ASCENT
    return descent * fontsize, ascent * fontsize
