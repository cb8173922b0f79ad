# src/pdfcensor/state_iterator.py
#!/usr/bin/env python3
#
# This file includes code adapted from pdfminer.six (https://github.com/pdfminer/pdfminer.six)
# Copyright (c) 2004-2016 Yusuke Shinyama <yusuke at cs dot nyu dot edu>
#
# Licensed under the MIT License.
# You may obtain a copy of the License at: https://opensource.org/licenses/MIT
# ------------------------------------------------------------------------------

"""Module: pdfcensor.state_iterator

A pdfminer interpreter that, instead of rendering a content stream, steps
through it one operator at a time and reports what each operator did.
"""

import logging
from typing import Any, Dict, Iterator, List, Sequence

from pdfminer.pdfdevice import PDFDevice
from pdfminer.pdffont import PDFUnicodeNotDefined
from pdfminer.pdfinterp import PDFContentParser, PDFPageInterpreter, PDFResourceManager
from pdfminer.pdftypes import PDFStream
from pdfminer.psparser import PSEOF, PSKeyword

from .errors import MalformedContentError
from .handler import TextRun
from .utils.pdf_conversion import (
    IDENTITY,
    Matrix,
    concat_matrices,
    extract_string_bytes,
    normalize_pdf_operand,
)
from .utils.pdf_geometry import font_extent, text_run_rect

logger = logging.getLogger(__name__)

UNMAPPED_CHAR = "�"

STREAM_READERS = ("get_data", "get_rawdata", "read_bytes")


def method_name_for(op_name: str) -> str:
    """pdfminer's naming scheme for operator methods (``T*`` -> ``do_T_a``)."""
    return "do_" + op_name.replace("*", "_a").replace('"', "_w").replace("'", "_q")


class StreamStateIterator(PDFPageInterpreter):
    """Steps through a content stream, yielding one dictionary per operator.

    Each step holds:

    * ``operator``: The operator name (str)
    * ``operands``: List of normalized operands
    * ``state``: A snapshot of the graphics/text state *after* execution.
    * ``raw_bytes``: The bytes of the instruction in the source stream.
    * ``text_runs``: The :class:`~pdfcensor.handler.TextRun` objects the
      instruction rendered (empty for anything but text-show operators).
    * ``advance``: Horizontal displacement of the text cursor caused by
      showing text, in unscaled text space units.

    As with the parent class, call ``init_resources`` before
    :meth:`execute` so that fonts can be found.

    Args:
        rsrcmgr: Shared pdfminer resource manager (font cache).
        device: A pdfminer device. The base ``PDFDevice`` is enough.
        ctm: The transformation matrix in effect when the stream starts.
            Nested forms start from their ``/Matrix`` times the CTM at the
            invoking ``Do``.
    """

    def __init__(
        self,
        rsrcmgr: PDFResourceManager,
        device: PDFDevice,
        ctm: Matrix = IDENTITY,
    ):
        super().__init__(rsrcmgr, device)
        self.init_state(ctm=tuple(ctm))
        super().init_resources({})
        self._runs: List[TextRun] = []
        self._advance = 0.0

    def capture_state(self) -> Dict[str, Any]:
        """A copy of the current graphics and text state."""
        textstate = self.textstate.copy()
        textstate.matrix = list(textstate.matrix)
        textstate.linematrix = list(textstate.linematrix)
        font = textstate.font
        return {
            "ctm": self.ctm,
            "tstate": textstate,
            "gstate": self.graphicstate.copy(),
            "font_name": getattr(font, "basefont", None) if font else None,
        }

    @staticmethod
    def parser_offset(parser: PDFContentParser) -> int:
        """Byte offset of the parser head in the data it parses."""
        if not hasattr(parser, "buf"):
            return 0
        if not parser.fp:
            return parser.charpos
        # fp.tell() is the end of the chunk currently buffered
        return max(0, parser.fp.tell() - len(parser.buf) + parser.charpos)

    @staticmethod
    def _stream_data(stream: Any) -> bytes:
        seen = set()
        while hasattr(stream, "resolve") and id(stream) not in seen:
            seen.add(id(stream))
            stream = stream.resolve()
        for reader in STREAM_READERS:
            if hasattr(stream, reader):
                return getattr(stream, reader)()
        if isinstance(stream, bytes):
            return stream
        return str(stream).encode("latin1")

    def consolidate_streams(self, streams: Sequence[object]) -> bytes:
        """Joins ``streams`` into one buffer.

        A space goes between chunks that do not already end in whitespace,
        since the tokens at a boundary must not fuse.
        """
        joined = bytearray()
        for stream in streams:
            data = self._stream_data(stream)
            joined += data
            if not data[-1:].isspace():
                joined += b" "
        return bytes(joined).strip()

    def _interpret(self, op_name: str, operands: List[Any]) -> None:
        """Runs the pdfminer handler of ``op_name``, collecting text runs."""
        self._runs = []
        self._advance = 0.0
        method = getattr(self, method_name_for(op_name), None)
        if method is None:
            return
        try:
            method(*operands)
        except TypeError as e:
            # Wrong operand count. The instruction is still reported.
            logger.debug("Internal processing failed for %s: %s", op_name, e)

    def execute(self, streams: Sequence[object]) -> Iterator[Dict[str, Any]]:  # type:ignore
        """Parses ``streams`` and yields one step per operator."""
        data = self.consolidate_streams(streams)
        if not data:
            return
        # Trailing whitespace terminates a final keyword for the tokenizer.
        data += b"\n"
        parser = PDFContentParser([PDFStream({}, data)])

        operands: List[Any] = []
        start = 0
        while True:
            if not operands:
                start = self.parser_offset(parser)
            try:
                token = parser.nextobject()
            except PSEOF:
                break
            obj = token[1] if isinstance(token, tuple) else token

            if not isinstance(obj, PSKeyword):
                operands.append(obj)
                continue

            op_name = obj.name.decode("ascii")
            self._interpret(op_name, operands)
            end = self.parser_offset(parser)
            if end < start:
                # pdfminer reports 0 once the data is exhausted
                end = len(data)

            yield {
                "operator": op_name,
                "operands": [normalize_pdf_operand(x) for x in operands],
                "state": self.capture_state(),
                "raw_bytes": data[start:end],
                "text_runs": tuple(self._runs),
                "advance": self._advance,
            }
            operands = []

    # pdfminer keeps the text matrix Tm as ``textstate.matrix`` and the
    # line matrix Tlm as the offset ``textstate.linematrix = (g, h)``:
    #
    #   Tlm = Tm with its translation moved by (g, h)
    #
    # Operators that start a new line reset the offset to (0, 0); showing
    # text moves Tm only, so the offset grows by the opposite amount.

    def do_Td(self, tx, ty) -> None:
        """Moves to the start of the next line, offset by (tx, ty) from
        the start of the current line: ``Tm = Tlm = [1 0 0 1 tx ty] x Tlm``.
        """
        a, b, c, d, e, f = self.textstate.matrix
        g, h = self.textstate.linematrix
        line_start = (a, b, c, d, e + g, f + h)
        self.textstate.matrix = concat_matrices((1, 0, 0, 1, float(tx), float(ty)), line_start)
        self.textstate.linematrix = (0, 0)

    def do_TD(self, tx, ty):
        """``tx ty TD`` is ``-ty TL tx ty Td``."""
        super().do_TL(-ty)
        self.do_Td(tx, ty)

    def do_T_a(self) -> None:
        """Move to the start of the next line: same as ``0 -TL Td``.

        pdfminer stores the leading negated, so the offset is the stored value.
        """
        self.do_Td(0, self.textstate.leading)

    def do__w(self, aw, ac, s) -> None:
        """The ``"`` operator: ``aw Tw ac Tc s '``."""
        self.do_Tw(aw)
        self.do_Tc(ac)
        self.do__q(s)

    def do_Do(self, xobjid_arg) -> None:
        """XObjects are resolved and descended into by the walker."""

    def do_TJ(self, seq) -> None:
        """Records the text runs shown and advances the text matrix.

        Each string element becomes one :class:`TextRun`. The advance follows
        ``tx = [(w0 * fontsize) + Tc + (space? Tw)] * (scaling/100)`` per
        glyph, with numeric elements as kerning.

        This should affect T_{m} only. T_{lm} is unchanged, so
        textstate.linematrix is compensated (see the note above do_Td).
        """
        ts = self.textstate
        if ts.font is None:
            raise MalformedContentError("Text shown before a font was selected")
        if not isinstance(seq, list):
            seq = [seq]

        h_scale = ts.scaling / 100.0
        descent, ascent = font_extent(ts.font, ts.fontsize)
        tx_accum = 0.0

        for item in seq:
            if isinstance(item, (int, float)):
                # Kerning: -num / 1000 * fontsize * h_scale
                tx_accum -= (item / 1000.0) * ts.fontsize * h_scale
            elif isinstance(item, (bytes, str)):
                width = self._record_run(
                    extract_string_bytes(item), tx_accum, descent, ascent, h_scale
                )
                tx_accum += width

        self._advance += tx_accum
        self._set_matrices_for_kerning_block(ts, tx_accum)

    def _record_run(
        self,
        data: bytes,
        x_offset: float,
        descent: float,
        ascent: float,
        h_scale: float,
    ) -> float:
        """Builds the TextRun for one string element; returns its advance."""
        ts = self.textstate
        font = ts.font
        cids = list(font.decode(data))
        if not cids:
            return 0.0

        word_spacing_applies = not font.is_multibyte()
        width = 0.0
        chars = []
        for cid in cids:
            width += font.char_width(cid) * ts.fontsize + ts.charspace
            if word_spacing_applies and cid == 32:
                width += ts.wordspace
            chars.append(self._to_unicode(font, cid))
        width *= h_scale

        text = "".join(chars)
        self._runs.append(
            TextRun(
                text=text,
                rect=text_run_rect(
                    x_offset, width, descent, ascent, ts.rise, ts.matrix, self.ctm, text
                ),
                font_name=getattr(font, "basefont", None),
                font_size=ts.fontsize,
                matrix=concat_matrices(
                    concat_matrices((1, 0, 0, 1, x_offset, 0), ts.matrix), self.ctm
                ),
                char_codes=tuple(cids),
            )
        )
        return width

    @staticmethod
    def _to_unicode(font, cid: int) -> str:
        try:
            return font.to_unichr(cid)
        except PDFUnicodeNotDefined:
            return UNMAPPED_CHAR

    def _set_matrices_for_kerning_block(self, ts, tx_accum):
        # Tm = [a b 0 c d 0 e f 1]
        # We advance along the 'a' and 'b' vectors of the text line
        a, b, c, d, e, f = ts.matrix
        ts.matrix = (a, b, c, d, e + tx_accum * a, f + tx_accum * b)

        # Keep T_{lm} unchanged.
        g, h = ts.linematrix
        ts.linematrix = (g - tx_accum * a, h - tx_accum * b)
