# src/pdfcensor/api.py
"""
Public API for the PDF content censor.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import pikepdf

from .cover_marks import CROSS, CoverMark, draw_cover_marks
from .extractor import BoundingBoxExtractor
from .handler import CensorHandler, Color
from .rewriter import SelectiveRewriter
from .utils.pdf_geometry import Rectangle
from .walker import DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)

PagesArg = Union[None, int, pikepdf.Page, List[Union[int, pikepdf.Page]]]


def _check_color(name: str, color) -> None:
    if len(color) != 3 or not all(0.0 <= float(c) <= 1.0 for c in color):
        raise ValueError(f"{name} must be three components in [0, 1], got {color!r}")


@dataclass
class CensorOptions:
    """Configuration options for the censoring process."""

    recurse_xobjects: bool = True
    """If True, descends into Form XObjects and transparency groups drawn
    from the page, rewriting their content and looking for the images
    they draw. Defaults to True.

    """

    max_depth: int = DEFAULT_MAX_DEPTH
    """Maximum number of simultaneously open content streams (the page
    counts as one). Deeper nesting is treated as malformed input.

    """

    keep_text_advance: bool = False
    """If True, censored text is replaced by an equally wide, invisible
    spacer so that text following it on the same line does not move.

    """

    cover_text: bool = True
    """Draw a filled box over every censored text run."""

    cover_objects: bool = True
    """Draw a crossed box over every image and form on processed pages."""

    object_mark_color: Color = (0.25, 0.25, 0.25)
    """Stroke colour of the boxes drawn over images and forms."""

    object_mark_line_width: float = 2.0
    """Line width of the boxes drawn over images and forms."""

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {self.max_depth}")
        if self.object_mark_line_width <= 0:
            raise ValueError(
                f"object_mark_line_width must be positive, got {self.object_mark_line_width}"
            )
        _check_color("object_mark_color", self.object_mark_color)
        self.object_mark_color = tuple(float(c) for c in self.object_mark_color)


@dataclass
class CensorReport:
    """What :func:`process` found and covered, keyed by 0-based page index."""

    text_marks: Dict[int, List[CoverMark]] = field(default_factory=dict)
    object_boxes: Dict[int, List[Rectangle]] = field(default_factory=dict)

    @property
    def censored_run_count(self) -> int:
        """Text runs covered, counted per page: a run in a form drawn on two
        pages counts twice."""
        return sum(len(marks) for marks in self.text_marks.values())


def censor_text(
    pdf: pikepdf.Pdf,
    handler: CensorHandler,
    options: Optional[CensorOptions] = None,
    pages: PagesArg = None,
) -> Dict[int, List[CoverMark]]:
    """Removes the text ``handler`` censors from the content of ``pages``.

    Args:
        pdf: The :class:`pikepdf.Pdf` to modify in place.
        handler: The :class:`~pdfcensor.handler.CensorHandler` deciding
            which text runs to censor.
        options: Configuration options. If ``None``, defaults are used.
        pages: The pages to process. Can be a single integer (0-indexed),
            a single Page object, a list of integers/Pages, or None
            (processes all pages).

    Returns:
        The cover marks of the suppressed runs, per 0-based page index.

    Raises:
        TypeError: If ``pdf`` is not a pikepdf object, ``handler`` does not
            implement the handler interface, or ``pages`` has invalid types.
    """
    if not isinstance(pdf, pikepdf.Pdf):
        raise TypeError("The 'pdf' argument must be a pikepdf.Pdf object.")
    if options is None:
        options = CensorOptions()

    rewriter = SelectiveRewriter(
        pdf,
        handler,
        recurse_xobjects=options.recurse_xobjects,
        max_depth=options.max_depth,
        keep_text_advance=options.keep_text_advance,
    )
    return rewriter.censor(_resolve_pages(pdf, pages))


def find_object_boxes(
    page: pikepdf.Page, options: Optional[CensorOptions] = None
) -> List[Rectangle]:
    """Page-space rectangles of the images and forms drawn on ``page``."""
    if not isinstance(page, pikepdf.Page):
        raise TypeError("The 'page' argument must be a pikepdf.Page object.")
    if options is None:
        options = CensorOptions()
    extractor = BoundingBoxExtractor(options.recurse_xobjects, options.max_depth)
    return extractor.extract(page)


def process(
    pdf: pikepdf.Pdf,
    handler: CensorHandler,
    options: Optional[CensorOptions] = None,
    pages: PagesArg = None,
) -> CensorReport:
    """High-level entry point: censor text, then cover text and objects.

    Image and form positions are collected after the text pass, so the
    boxes reflect the rewritten content. Cover marks are appended to each
    processed page.
    """
    if options is None:
        options = CensorOptions()

    text_marks = censor_text(pdf, handler, options, pages)
    report = CensorReport(text_marks=text_marks)

    for index, marks in text_marks.items():
        page = pdf.pages[index]
        boxes = find_object_boxes(page, options)
        report.object_boxes[index] = boxes

        to_draw = list(marks) if options.cover_text else []
        if options.cover_objects:
            to_draw.extend(CoverMark(box, options.object_mark_color, CROSS) for box in boxes)
        draw_cover_marks(pdf, page, to_draw, options.object_mark_line_width)
        logger.info(
            "Page %d: %d text run(s) censored, %d object(s) covered",
            index + 1,
            len(marks),
            len(boxes) if options.cover_objects else 0,
        )

    return report


def _resolve_pages(pdf: pikepdf.Pdf, pages_arg: PagesArg) -> List[pikepdf.Page]:
    """Helper to normalize the flexible 'pages' argument."""
    if pages_arg is None:
        return list(pdf.pages)

    if isinstance(pages_arg, int):
        return [pdf.pages[pages_arg]]

    if isinstance(pages_arg, pikepdf.Page):
        return [pages_arg]

    if isinstance(pages_arg, (list, tuple)):
        resolved = []
        for item in pages_arg:
            if isinstance(item, int):
                resolved.append(pdf.pages[item])
            elif isinstance(item, pikepdf.Page):
                resolved.append(item)
            else:
                raise TypeError(f"Invalid item in 'pages' list: {type(item)}")
        return resolved

    raise TypeError(f"Invalid type for 'pages' argument: {type(pages_arg)}")
