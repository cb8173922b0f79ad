# src/pdfcensor/extractor.py
"""Module: pdfcensor.extractor

Finds where images and forms land on a page.
"""

import logging
from typing import List

import pikepdf

from .utils.pdf_conversion import pdf_matrix
from .utils.pdf_geometry import Rectangle, form_rect, unit_square_rect
from .walker import (
    DEFAULT_MAX_DEPTH,
    NESTED_KINDS,
    ContentStep,
    ContentWalker,
    ObjectKind,
    OperatorKind,
    StreamVisitor,
    WalkFrame,
)

logger = logging.getLogger(__name__)

INLINE_IMAGE_OWNER = "inline image"


class BoundingBoxExtractor(StreamVisitor):
    """Collects the page-space rectangle of every image and form drawn.

    Images map the unit square through the active transform. Forms and
    transparency groups map their ``/BBox`` through their ``/Matrix`` and
    the active transform, and are then walked for the objects they draw
    in turn. Stencil masks have no visible bounds of their own and are
    skipped. Rectangles come out in drawing order, overlaps included.
    """

    def __init__(self, recurse_xobjects: bool = True, max_depth: int = DEFAULT_MAX_DEPTH):
        self.rects: List[Rectangle] = []
        self._walker = ContentWalker(self, recurse_xobjects, max_depth)

    def extract(self, page: pikepdf.Page) -> List[Rectangle]:
        self.rects = []
        self._walker.walk(page)
        return list(self.rects)

    def visit(self, step: ContentStep, frame: WalkFrame) -> None:
        if step.object_kind is None:
            return

        owner = step.xobject_name
        if step.kind is OperatorKind.INLINE_IMAGE:
            owner = INLINE_IMAGE_OWNER

        if step.object_kind is ObjectKind.IMAGE:
            rect = unit_square_rect(step.ctm, owner)
        elif step.object_kind in NESTED_KINDS:
            bbox = step.xobject.get("/BBox")
            if bbox is None:
                logger.warning("Form %s has no /BBox; no rectangle recorded", owner)
                return
            rect = form_rect(bbox, pdf_matrix(step.xobject.get("/Matrix")), step.ctm, owner)
        elif step.object_kind is ObjectKind.STENCIL_MASK:
            logger.debug("Skipping stencil mask %s", owner)
            return
        else:
            logger.debug("Ignoring XObject %s of subtype %s", owner, step.xobject.get("/Subtype"))
            return

        logger.debug("Found %s at %s", owner, rect)
        self.rects.append(rect)
