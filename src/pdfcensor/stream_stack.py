# src/pdfcensor/stream_stack.py
"""Module: pdfcensor.stream_stack

Keeps one (input, output) stream pair per open nesting level of a
document traversal: the page, then any forms and transparency groups
drawn from it. The output of a frame replaces the content of the object
it was opened for when the frame is popped and committed.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

import pikepdf

from .errors import EmptyStreamStackError
from .utils.pdf_conversion import to_pikepdf_operand

logger = logging.getLogger(__name__)

PDF_WHITESPACE = b"\x00\t\n\x0c\r "


class ContentStreamWriter:
    """Appends instructions to the output buffer of one stream frame.

    Chunks are joined with a newline whenever neither side already
    provides whitespace, so adjacent tokens never fuse.
    """

    def __init__(self, buffer: io.BytesIO):
        self._buffer = buffer
        self._last_byte = b""
        self.instruction_count = 0

    def write_raw(self, chunk: bytes) -> None:
        """Writes already-serialized content stream bytes."""
        if self._buffer.closed:
            raise ValueError("Writer is no longer valid: its stream frame was popped")
        if not chunk:
            return
        if (
            self._last_byte
            and self._last_byte not in PDF_WHITESPACE
            and chunk[:1] not in PDF_WHITESPACE
        ):
            self._buffer.write(b"\n")
        self._buffer.write(chunk)
        self._last_byte = chunk[-1:]
        self.instruction_count += 1

    def write_instruction(self, operands: Sequence[Any], operator: str) -> None:
        """Serializes and writes a single instruction."""
        chunk = pikepdf.unparse_content_stream(
            [([to_pikepdf_operand(x) for x in operands], pikepdf.Operator(operator))]
        )
        self.write_raw(chunk)

    def write_step(self, step: Any) -> None:
        """Forwards an instruction verbatim, using its source bytes if known."""
        raw = getattr(step, "raw_bytes", b"")
        if raw and raw.strip():
            self.write_raw(raw.strip(PDF_WHITESPACE))
        else:
            self.write_instruction(step.operands, step.operator)


@dataclass
class StreamFrame:
    """One open nesting level.

    Attributes:
        target: The page (``pikepdf.Page``) or XObject (``pikepdf.Stream``)
            whose content this frame rewrites.
        kind: ``"page"``, ``"form"`` or ``"group"``.
        input: Read handle over a duplicate of the target's original
            content.
        output: Buffer receiving the forwarded instructions.
    """

    target: Any
    kind: str
    input: io.BytesIO
    output: io.BytesIO = field(default_factory=io.BytesIO)
    data: Optional[bytes] = None

    def __post_init__(self):
        self.writer = ContentStreamWriter(self.output)

    def close(self) -> bytes:
        """Closes both sides and keeps the finished output in ``data``."""
        if self.data is None:
            self.data = self.output.getvalue()
        try:
            self.input.close()
        except (OSError, ValueError) as e:
            logger.warning("Error closing input stream of %s frame: %s", self.kind, e)
        self.output.close()
        return self.data

    def commit(self, pdf: pikepdf.Pdf) -> None:
        """Replaces the target's content with this frame's output."""
        data = self.close()
        if isinstance(self.target, pikepdf.Page):
            # Consolidates a /Contents array into a single stream
            self.target.Contents = pdf.make_stream(data)
        else:
            self.target.write(data)
        logger.debug(
            "Committed %d instruction(s), %d bytes to %s frame",
            self.writer.instruction_count,
            len(data),
            self.kind,
        )


class StreamStack:
    """A LIFO stack of :class:`StreamFrame` objects.

    The stack only exists between :meth:`begin` and :meth:`end`; outside
    that window pushes are ignored and pops raise.
    """

    def __init__(self):
        self._frames: Optional[List[StreamFrame]] = None
        self.push_count = 0
        self.pop_count = 0

    @property
    def active(self) -> bool:
        return self._frames is not None

    @property
    def depth(self) -> int:
        return len(self._frames) if self._frames else 0

    @property
    def frames(self) -> List[StreamFrame]:
        return list(self._frames or [])

    def begin(self) -> None:
        if self._frames:
            logger.error(
                "Stream stack restarted with %d open frame(s); discarding them",
                len(self._frames),
            )
        self._frames = []
        self.push_count = 0
        self.pop_count = 0

    def push_frame(
        self, target: Any, source_bytes: bytes, kind: str = "page"
    ) -> Optional[StreamFrame]:
        """Opens a frame for ``target``. Ignored (with a warning) if inactive."""
        if target is None:
            raise TypeError("Cannot push a stream frame for None")
        if self._frames is None:
            logger.warning(
                "push_frame(%s) called outside a document traversal; ignoring", kind
            )
            return None
        frame = StreamFrame(target=target, kind=kind, input=io.BytesIO(source_bytes))
        self._frames.append(frame)
        self.push_count += 1
        return frame

    def current_writer(self) -> Optional[ContentStreamWriter]:
        if not self._frames:
            return None
        return self._frames[-1].writer

    def pop_frame(self) -> StreamFrame:
        if not self._frames:
            raise EmptyStreamStackError(
                "pop_frame() with no open stream frame (mismatched push/pop)"
            )
        frame = self._frames.pop()
        frame.close()
        self.pop_count += 1
        return frame

    def end(self) -> None:
        """Finishes a traversal; a non-empty stack is logged and cleared."""
        if self._frames:
            logger.error(
                "Stream stack not empty at end of document: %d frame(s) left open",
                len(self._frames),
            )
            for frame in self._frames:
                frame.close()
        self._frames = None

    def reset(self) -> None:
        """Drops all frames without reporting; used after a failed traversal."""
        for frame in self._frames or []:
            frame.close()
        self._frames = None
