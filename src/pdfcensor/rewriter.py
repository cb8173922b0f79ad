# src/pdfcensor/rewriter.py
"""Module: pdfcensor.rewriter

The selective rewriter copies every instruction of a document to a fresh
output stream, except the text draws its handler asks to censor.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pikepdf

from .cover_marks import FILL, CoverMark
from .handler import CensorHandler
from .stream_stack import ContentStreamWriter, StreamStack
from .utils.pdf_conversion import invert_matrix
from .utils.pdf_geometry import transform_rect
from .walker import (
    DEFAULT_MAX_DEPTH,
    ContentStep,
    ContentWalker,
    FrameKind,
    OperatorKind,
    StreamVisitor,
    WalkFrame,
)

logger = logging.getLogger(__name__)

TEXT_KINDS = (OperatorKind.SHOW_TEXT, OperatorKind.NEXT_LINE_SHOW_TEXT)


class SelectiveRewriter(StreamVisitor):
    """Rewrites pages, dropping the text-show instructions ``handler`` censors.

    Every other instruction is forwarded byte for byte, in order, to the
    output of the innermost open stream frame. Forms and transparency
    groups drawn from a page are rewritten the same way and committed back
    to their XObjects when the traversal leaves them.

    Args:
        pdf: The document being rewritten. Pages are modified in place.
        handler: Decides per text run whether to censor, and is notified
            about document and page boundaries.
        recurse_xobjects: Rewrite forms and transparency groups too.
        max_depth: Nesting limit passed to the walker.
        keep_text_advance: Replace a censored text draw with a spacer
            ``TJ`` of the same width, so later text stays put.
    """

    def __init__(
        self,
        pdf: pikepdf.Pdf,
        handler: CensorHandler,
        recurse_xobjects: bool = True,
        max_depth: int = DEFAULT_MAX_DEPTH,
        keep_text_advance: bool = False,
    ):
        # pylint: disable=too-many-arguments, too-many-positional-arguments
        if not isinstance(pdf, pikepdf.Pdf):
            raise TypeError("The 'pdf' argument must be a pikepdf.Pdf object.")
        if not isinstance(handler, CensorHandler):
            raise TypeError(
                f"{type(handler).__name__} does not implement the CensorHandler interface"
            )
        self.pdf = pdf
        self.handler = handler
        self.keep_text_advance = keep_text_advance
        self.stack = StreamStack()
        self._walker = ContentWalker(self, recurse_xobjects, max_depth)
        self._last_decision = False
        self._page_number = 0
        self._page_count = 0
        self._marks: List[CoverMark] = []
        # Marks of suppressed form text, in form space, per form object
        self._form_marks: Dict[Tuple[int, int], List[CoverMark]] = {}

    def censor(
        self, pages: Optional[Sequence[pikepdf.Page]] = None
    ) -> Dict[int, List[CoverMark]]:
        """Rewrites ``pages`` (default: all) as one document traversal.

        Returns:
            For each processed page (0-based index), the cover marks of
            the text runs that were suppressed.
        """
        if pages is None:
            pages = list(self.pdf.pages)
        self._page_count = len(self.pdf.pages)
        marks_by_page: Dict[int, List[CoverMark]] = {}

        self.stack.begin()
        self._last_decision = False
        self._form_marks = {}
        try:
            self.handler.on_begin_document(self.pdf)
            for page in pages:
                index = self.pdf.pages.index(page)
                self._page_number = index + 1
                self._marks = []
                logger.debug("Censoring page %d of %d", self._page_number, self._page_count)
                self._walker.walk(page)
                marks_by_page[index] = self._marks
            self.handler.on_end_document(self.pdf)
        except Exception:
            self.stack.reset()
            raise
        self.stack.end()
        return marks_by_page

    def begin_stream(self, frame: WalkFrame) -> None:
        self.stack.push_frame(frame.container, frame.source_bytes, frame.kind.value)
        if frame.kind is FrameKind.PAGE:
            self.handler.on_begin_page(self._page_number, self._page_count)
        else:
            self._replay_form_marks(frame)

    def end_stream(self, frame: WalkFrame) -> None:
        self.stack.pop_frame().commit(self.pdf)
        if frame.kind is FrameKind.PAGE:
            self.handler.on_end_page(self._page_number)
        else:
            logger.debug("Leaving %s %s", frame.kind.value, frame.name)

    def visit(self, step: ContentStep, frame: WalkFrame) -> None:
        writer = self.stack.current_writer()
        if writer is None:
            raise RuntimeError("No open stream frame to write to")

        if step.kind not in TEXT_KINDS:
            writer.write_step(step)
            return

        if self.decide(step):
            self._suppress(step, writer, frame)
        else:
            writer.write_step(step)

    def decide(self, step: ContentStep) -> bool:
        """Asks the handler about each run; the last answer governs.

        An instruction without runs reuses the last decision made.
        """
        decision = self._last_decision
        for run in step.text_runs:
            decision = bool(self.handler.should_censor(run))
        self._last_decision = decision
        return decision

    def _suppress(
        self, step: ContentStep, writer: ContentStreamWriter, frame: WalkFrame
    ) -> None:
        for run in step.text_runs:
            mark = CoverMark(run.rect, self.handler.cover_color(run), FILL)
            self._marks.append(mark)
            if frame.kind is not FrameKind.PAGE:
                self._remember_form_mark(mark, frame)

        # Keep the line movement of ' and "
        if step.operator == '"':
            writer.write_instruction([step.operands[0]], "Tw")
            writer.write_instruction([step.operands[1]], "Tc")
            writer.write_instruction([], "T*")
        elif step.operator == "'":
            writer.write_instruction([], "T*")

        if self.keep_text_advance and step.advance:
            tstate = step.state["tstate"]
            scale = tstate.fontsize * tstate.scaling / 100.0
            if scale:
                writer.write_instruction([[-step.advance * 1000.0 / scale]], "TJ")

        logger.debug("Suppressed %s with %d run(s)", step.operator, len(step.text_runs))

    def _remember_form_mark(self, mark: CoverMark, frame: WalkFrame) -> None:
        if frame.objgen == (0, 0):
            return
        try:
            to_form_space = invert_matrix(frame.ctm)
        except np.linalg.LinAlgError:
            logger.debug("Form %s is drawn with a singular transform", frame.name)
            return
        self._form_marks.setdefault(frame.objgen, []).append(
            replace(mark, rect=transform_rect(mark.rect, to_form_space))
        )

    def _replay_form_marks(self, frame: WalkFrame) -> None:
        """Covers text suppressed when the same form was drawn before.

        That earlier draw already removed the text from the form, so this
        draw has no runs of its own to report.
        """
        replayed = self._form_marks.get(frame.objgen, ())
        for mark in replayed:
            self._marks.append(replace(mark, rect=transform_rect(mark.rect, frame.ctm)))
        if replayed:
            logger.debug("Replayed %d mark(s) of %s", len(replayed), frame.name)
