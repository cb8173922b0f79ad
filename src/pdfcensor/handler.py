# src/pdfcensor/handler.py
"""Module: pdfcensor.handler

The capability interface a censoring policy implements, and the
:class:`TextRun` values it is asked about.

The rewriter consults :meth:`CensorHandler.should_censor` once per text
run, in document order, and notifies the handler about document and page
boundaries so it can reset or flush per-page state.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable

import pikepdf

from .utils.pdf_conversion import Matrix
from .utils.pdf_geometry import Rectangle


Color = Tuple[float, float, float]

BLACK: Color = (0.0, 0.0, 0.0)


@dataclass(frozen=True)
class TextRun:
    """One string operand of a text-show instruction, as rendered.

    Attributes:
        text (str): The decoded text. Characters without a Unicode mapping
            appear as U+FFFD.
        rect (Rectangle): Page-space bounds of the run.
        font_name (Optional[str]): The font's PostScript base name
            (e.g. ``Helvetica``), not its resource name.
        font_size (float): The ``Tf`` size.
        matrix (Matrix): The text rendering matrix (text matrix times CTM)
            at the start of the run's instruction.
        char_codes (Tuple[int, ...]): The character codes (CIDs) shown.
    """

    text: str
    rect: Rectangle
    font_name: Optional[str]
    font_size: float
    matrix: Matrix
    char_codes: Tuple[int, ...] = ()


@runtime_checkable
class CensorHandler(Protocol):
    """What the rewriter needs from a censoring policy."""

    def should_censor(self, run: TextRun) -> bool: ...

    def cover_color(self, run: TextRun) -> Color: ...

    def on_begin_document(self, pdf: pikepdf.Pdf) -> None: ...

    def on_begin_page(self, page_number: int, page_count: int) -> None: ...

    def on_end_page(self, page_number: int) -> None: ...

    def on_end_document(self, pdf: pikepdf.Pdf) -> None: ...


class BaseCensorHandler:
    """A handler that censors nothing. Subclass and override what you need."""

    def should_censor(self, run: TextRun) -> bool:
        return False

    def cover_color(self, run: TextRun) -> Color:
        return BLACK

    def on_begin_document(self, pdf: pikepdf.Pdf) -> None:
        pass

    def on_begin_page(self, page_number: int, page_count: int) -> None:
        pass

    def on_end_page(self, page_number: int) -> None:
        pass

    def on_end_document(self, pdf: pikepdf.Pdf) -> None:
        pass
