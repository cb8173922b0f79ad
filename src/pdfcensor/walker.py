# src/pdfcensor/walker.py
"""Module: pdfcensor.walker

The traversal core shared by the rewriter and the bounding-box extractor.

:class:`ContentWalker` walks a page's content stream and, through an
explicit stack of :class:`WalkFrame` objects, the forms and transparency
groups it draws. Every instruction becomes a :class:`ContentStep` which
is handed to a :class:`StreamVisitor`. The walker classifies operators,
resolves ``Do`` operands against the active resources and keeps the
active transform correct across nesting levels; visitors decide what to
do with each step.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pikepdf
from pdfminer.pdfdevice import PDFDevice
from pdfminer.pdfinterp import PDFResourceManager
from pdfminer.pdftypes import PDFStream

from .errors import MalformedContentError, MissingXObjectError
from .handler import TextRun
from .state_iterator import StreamStateIterator
from .utils.pdf_conversion import (
    IDENTITY,
    Matrix,
    concat_matrices,
    miner_resources_for,
    pdf_matrix,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32


class OperatorKind(Enum):
    SHOW_TEXT = "show_text"
    NEXT_LINE_SHOW_TEXT = "next_line_show_text"
    DRAW_OBJECT = "draw_object"
    INLINE_IMAGE = "inline_image"
    OTHER = "other"


class ObjectKind(Enum):
    IMAGE = "image"
    STENCIL_MASK = "stencil_mask"
    FORM = "form"
    TRANSPARENCY_GROUP = "transparency_group"
    OTHER = "other"


class FrameKind(Enum):
    PAGE = "page"
    FORM = "form"
    TRANSPARENCY_GROUP = "group"


OPERATOR_KINDS = {
    "Tj": OperatorKind.SHOW_TEXT,
    "TJ": OperatorKind.SHOW_TEXT,
    "'": OperatorKind.NEXT_LINE_SHOW_TEXT,
    '"': OperatorKind.NEXT_LINE_SHOW_TEXT,
    "Do": OperatorKind.DRAW_OBJECT,
    "EI": OperatorKind.INLINE_IMAGE,
}

NESTED_KINDS = {
    ObjectKind.FORM: FrameKind.FORM,
    ObjectKind.TRANSPARENCY_GROUP: FrameKind.TRANSPARENCY_GROUP,
}


def classify_operator(op_name: str) -> OperatorKind:
    return OPERATOR_KINDS.get(op_name, OperatorKind.OTHER)


def classify_xobject(xobj: Any) -> ObjectKind:
    """Image, stencil mask, form, transparency group, or something else."""
    subtype = xobj.get("/Subtype")
    if subtype == "/Image":
        if bool(xobj.get("/ImageMask", False)):
            return ObjectKind.STENCIL_MASK
        return ObjectKind.IMAGE
    if subtype == "/Form":
        group = xobj.get("/Group")
        if isinstance(group, pikepdf.Dictionary) and group.get("/S") == "/Transparency":
            return ObjectKind.TRANSPARENCY_GROUP
        return ObjectKind.FORM
    return ObjectKind.OTHER


def classify_inline_image(image: Any) -> ObjectKind:
    """Inline images are stencils when ``/IM`` (or ``/ImageMask``) is true."""
    attrs = getattr(image, "attrs", {}) or {}
    if attrs.get("IM") is True or attrs.get("ImageMask") is True:
        return ObjectKind.STENCIL_MASK
    return ObjectKind.IMAGE


@dataclass(frozen=True)
class ContentStep:
    """One instruction of a content stream, as seen by a visitor.

    Attributes:
        operator (str): The operator, e.g. ``"Tj"``.
        operands (Tuple): Normalized operands (pikepdf names, bytes, numbers).
        raw_bytes (bytes): The instruction's bytes in the source stream.
        kind (OperatorKind): What the operator does, coarsely.
        state (Dict): Graphics/text state after the instruction ran.
        ctm (Matrix): The CTM after the instruction ran (for ``Do`` and
            ``EI``, the transform the object is drawn with).
        text_runs (Tuple[TextRun, ...]): Runs shown by a text operator.
        advance (float): Text cursor displacement caused by showing text.
        xobject_name (Optional[str]): The name a ``Do`` refers to.
        xobject (Any): The resolved XObject (or the inline image).
        object_kind (Optional[ObjectKind]): Classification of ``xobject``.
        depth (int): Nesting level; the page is 0.
    """

    operator: str
    operands: Tuple[Any, ...]
    raw_bytes: bytes
    kind: OperatorKind
    state: Dict[str, Any] = field(compare=False, repr=False)
    ctm: Matrix = IDENTITY
    text_runs: Tuple[TextRun, ...] = ()
    advance: float = 0.0
    xobject_name: Optional[str] = None
    xobject: Any = field(default=None, compare=False, repr=False)
    object_kind: Optional[ObjectKind] = None
    depth: int = 0


@dataclass
class WalkFrame:
    """One open content stream in the traversal."""

    container: Any
    kind: FrameKind
    resources: Any
    ctm: Matrix
    source_bytes: bytes
    depth: int
    steps: Iterator[Dict[str, Any]] = field(repr=False, default_factory=lambda: iter(()))
    name: Optional[str] = None

    @property
    def objgen(self) -> Tuple[int, int]:
        obj = getattr(self.container, "obj", self.container)
        return getattr(obj, "objgen", (0, 0))


class StreamVisitor:
    """Receives the steps of a traversal. All hooks default to no-ops."""

    def begin_stream(self, frame: WalkFrame) -> None:
        pass

    def end_stream(self, frame: WalkFrame) -> None:
        pass

    def visit(self, step: ContentStep, frame: WalkFrame) -> None:
        pass

    def should_descend(self, step: ContentStep, frame: WalkFrame) -> bool:
        return True


class ContentWalker:
    """Walks a page and its nested forms, dispatching steps to a visitor.

    Nesting is handled with an explicit frame stack, so the depth is
    bounded by ``max_depth`` instead of the interpreter's recursion limit.

    Args:
        visitor: Receives every step, plus begin/end notifications for
            every stream entered.
        recurse_xobjects: Descend into forms and transparency groups.
        max_depth: Maximum number of simultaneously open streams,
            including the page. Exceeding it raises
            :class:`~pdfcensor.errors.MalformedContentError`.
    """

    def __init__(
        self,
        visitor: StreamVisitor,
        recurse_xobjects: bool = True,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.visitor = visitor
        self.recurse_xobjects = recurse_xobjects
        self.max_depth = max_depth
        self.rsrcmgr = PDFResourceManager()

    def walk(self, page: pikepdf.Page) -> None:
        if page is None:
            raise TypeError("Cannot walk the content of None")

        root = self._open_frame(
            container=page,
            kind=FrameKind.PAGE,
            resources=getattr(page, "Resources", None),
            ctm=IDENTITY,
            depth=0,
        )
        stack: List[WalkFrame] = [root]
        self.visitor.begin_stream(root)

        while stack:
            frame = stack[-1]
            step_data = next(frame.steps, None)
            if step_data is None:
                stack.pop()
                self.visitor.end_stream(frame)
                continue

            step = self._make_step(step_data, frame)
            self.visitor.visit(step, frame)

            if step.object_kind in NESTED_KINDS:
                child = self._descend(step, stack)
                if child is not None:
                    stack.append(child)
                    self.visitor.begin_stream(child)

    def _descend(self, step: ContentStep, stack: List[WalkFrame]) -> Optional[WalkFrame]:
        if not self.recurse_xobjects:
            return None
        parent = stack[-1]
        if not self.visitor.should_descend(step, parent):
            return None

        xobj = step.xobject
        objgen = getattr(xobj, "objgen", (0, 0))
        if objgen != (0, 0) and any(f.objgen == objgen for f in stack):
            logger.warning(
                "Cyclic XObject reference %s %s; not descending again",
                step.xobject_name,
                objgen,
            )
            return None

        if len(stack) >= self.max_depth:
            raise MalformedContentError(
                f"XObject nesting deeper than {self.max_depth} levels "
                f"at {step.xobject_name}"
            )

        logger.debug("Entering %s %s", step.object_kind.value, step.xobject_name)
        return self._open_frame(
            container=xobj,
            kind=NESTED_KINDS[step.object_kind],
            resources=xobj.get("/Resources", parent.resources),
            ctm=concat_matrices(pdf_matrix(xobj.get("/Matrix")), step.ctm),
            depth=parent.depth + 1,
            name=step.xobject_name,
        )

    def _open_frame(
        self,
        container: Any,
        kind: FrameKind,
        resources: Any,
        ctm: Matrix,
        depth: int,
        name: Optional[str] = None,
    ) -> WalkFrame:
        # pylint: disable=too-many-arguments, too-many-positional-arguments
        iterator = StreamStateIterator(self.rsrcmgr, PDFDevice(self.rsrcmgr), ctm=ctm)
        iterator.init_resources(miner_resources_for(resources))

        source_bytes = iterator.consolidate_streams(get_content_streams(container))
        return WalkFrame(
            container=container,
            kind=kind,
            resources=resources,
            ctm=ctm,
            source_bytes=source_bytes,
            depth=depth,
            steps=iterator.execute([source_bytes]),
            name=name,
        )

    def _make_step(self, step_data: Dict[str, Any], frame: WalkFrame) -> ContentStep:
        op_name = step_data["operator"]
        kind = classify_operator(op_name)
        operands = tuple(step_data["operands"])
        state = step_data["state"]

        xobject_name = None
        xobject = None
        object_kind = None
        if kind is OperatorKind.DRAW_OBJECT:
            xobject_name, xobject = self._resolve_xobject(operands, frame.resources)
            object_kind = classify_xobject(xobject)
        elif kind is OperatorKind.INLINE_IMAGE:
            xobject = next((x for x in operands if isinstance(x, PDFStream)), None)
            object_kind = classify_inline_image(xobject)

        return ContentStep(
            operator=op_name,
            operands=operands,
            raw_bytes=step_data["raw_bytes"],
            kind=kind,
            state=state,
            ctm=tuple(state["ctm"]),
            text_runs=step_data.get("text_runs", ()),
            advance=step_data.get("advance", 0.0),
            xobject_name=xobject_name,
            xobject=xobject,
            object_kind=object_kind,
            depth=frame.depth,
        )

    @staticmethod
    def _resolve_xobject(operands: Tuple[Any, ...], resources: Any) -> Tuple[str, Any]:
        if len(operands) != 1 or not isinstance(operands[0], pikepdf.Name):
            raise MalformedContentError(f"Do expects a single name operand, got {operands!r}")
        name = str(operands[0])

        xobjects = None
        if isinstance(resources, pikepdf.Dictionary):
            xobjects = resources.get("/XObject")
        if not isinstance(xobjects, pikepdf.Dictionary) or name not in xobjects:
            raise MissingXObjectError(name)
        return name, xobjects[name]


def get_content_streams(container: Any) -> List[Any]:
    """
    Return a flat list of clean content streams from a Page, Stream, Array, or raw object.
    """
    raw_contents = _resolve_raw_contents(container)
    items = _normalize_to_list(raw_contents)

    clean_streams: List[Any] = []
    for item in items:
        clean_streams.extend(_process_content_item(item))

    return clean_streams


def _resolve_raw_contents(container: Any) -> Any:
    """Resolve a Page or raw object to its /Contents-compatible form."""
    if isinstance(container, pikepdf.Page):
        return container.obj.get("/Contents", [])
    return container


def _normalize_to_list(raw_contents: Any) -> List[Any]:
    """Ensure contents are always returned as a list."""
    if isinstance(raw_contents, (list, pikepdf.Array)):
        return list(raw_contents)
    return [raw_contents]


def _process_content_item(item: Any) -> List[Any]:
    # Case: Raw bytes
    if isinstance(item, bytes):
        return [item]

    if isinstance(item, pikepdf.Stream):
        return [item]

    if item is not None:
        logger.warning("Skipping invalid content item (not a stream): %r", item)
    return []
