# tests/test_state_iterator.py
import logging
from unittest.mock import Mock

import pytest
from pdfminer.pdfdevice import PDFDevice
from pdfminer.pdffont import PDFUnicodeNotDefined
from pdfminer.pdfinterp import PDFContentParser, PDFResourceManager
from pdfminer.psparser import LIT

from pdfcensor.errors import MalformedContentError
from pdfcensor.state_iterator import UNMAPPED_CHAR, StreamStateIterator, method_name_for

HELVETICA = {
    "Type": LIT("Font"),
    "Subtype": LIT("Type1"),
    "BaseFont": LIT("Helvetica"),
    "Encoding": LIT("WinAnsiEncoding"),
}


def make_iterator(ctm=(1, 0, 0, 1, 0, 0)):
    rsrcmgr = PDFResourceManager()
    # PDFDevice base class is sufficient, it has no-op implementations
    iterator = StreamStateIterator(rsrcmgr, PDFDevice(rsrcmgr), ctm=ctm)
    iterator.init_resources({"Font": {"F1": HELVETICA}})
    return iterator


@pytest.fixture
def iterator():
    return make_iterator()


def steps(iterator, data: bytes):
    return list(iterator.execute([data]))


# --- Stream handling ---


def test_consolidate_empty(iterator):
    assert steps(iterator, b"") == []


def test_consolidate_various_types(iterator):
    class MockStreamA:
        def resolve(self):
            return self

        def get_data(self):
            return b"A"

    class MockStreamB:
        def get_rawdata(self):
            return b"B\n"

    result = iterator.consolidate_streams([MockStreamA(), MockStreamB(), "C"])
    # chunks never fuse into one token
    assert result == b"A B\nC"


def test_consolidate_indirect_cycle(iterator):
    """Test robustness against indirect loops (A -> B -> A)."""

    class MockNode:
        def __init__(self, name):
            self.name = name
            self.target = None

        def resolve(self):
            return self.target if self.target else self

        def get_data(self):
            return self.name

    node_a = MockNode(b"A")
    node_b = MockNode(b"B")
    node_a.target = node_b
    node_b.target = node_a

    assert iterator.consolidate_streams([node_a]) == b"A"


def test_parser_no_buffer(iterator):
    parser = Mock(spec=PDFContentParser)
    del parser.buf
    parser.charpos = 10
    assert StreamStateIterator.parser_offset(parser) == 0


def test_raw_bytes_cover_each_instruction(iterator):
    data = b"q 1 0 0 1 5 5 cm\nBT /F1 12 Tf (Hi) Tj ET Q"
    result = steps(iterator, data)

    assert [s["operator"] for s in result] == ["q", "cm", "BT", "Tf", "Tj", "ET", "Q"]
    assert b"".join(s["raw_bytes"] for s in result).strip() == data
    assert result[4]["raw_bytes"].strip() == b"(Hi) Tj"


def test_handler_crash_logging(iterator, caplog):
    def broken_handler(*args):
        raise TypeError("Oops")

    iterator.do_BrokenOp = broken_handler

    with caplog.at_level(logging.DEBUG):
        iterator._interpret("BrokenOp", [])

    assert "Internal processing failed" in caplog.text


# --- Operator names ---


@pytest.mark.parametrize(
    "op, name",
    [("Tj", "do_Tj"), ("T*", "do_T_a"), ("'", "do__q"), ('"', "do__w"), ("b*", "do_b_a")],
)
def test_method_name_for(op, name):
    assert method_name_for(op) == name


def test_next_line_operators_move_the_cursor(iterator):
    result = steps(iterator, b"BT /F1 10 Tf 12 TL 0 100 Td T* (A) ' 2 1 (A) \" ET")
    positions = [s["state"]["tstate"].matrix[5] for s in result]
    # after Td, T*, ' and "
    assert positions[3:7] == [100, 88, 76, 64]
    assert result[-2]["state"]["tstate"].wordspace == 2
    assert result[-2]["state"]["tstate"].charspace == 1


def test_do_TD_logic(iterator):
    iterator.textstate.matrix = [1, 0, 0, 1, 0, 0]
    iterator.do_TD(10, 20)

    # pdfminer stores the leading negated
    assert iterator.textstate.leading == 20.0
    assert iterator.textstate.matrix[4] == 10
    assert iterator.textstate.matrix[5] == 20


# --- Text runs ---


def test_text_runs_and_advance(iterator):
    (step,) = [s for s in steps(iterator, b"BT /F1 10 Tf 20 30 Td [(AB) -500 (C)] TJ ET") if s["operator"] == "TJ"]

    runs = step["text_runs"]
    assert [r.text for r in runs] == ["AB", "C"]
    assert runs[0].font_name == "Helvetica"
    assert runs[0].font_size == 10
    assert runs[0].char_codes == (65, 66)

    # Helvetica: A = B = 667, C = 722; kerning -500 moves right by 5
    assert runs[0].rect.x == pytest.approx(20)
    assert runs[0].rect.width == pytest.approx(13.34)
    assert runs[1].rect.x == pytest.approx(20 + 13.34 + 5)
    assert runs[1].matrix[4] == pytest.approx(20 + 13.34 + 5)
    assert step["advance"] == pytest.approx(13.34 + 5 + 7.22)
    assert step["state"]["tstate"].matrix[4] == pytest.approx(20 + 25.56)


def test_word_and_char_spacing(iterator):
    (step,) = [s for s in steps(iterator, b"BT /F1 10 Tf 1 Tc 3 Tw (A A) Tj ET") if s["operator"] == "Tj"]
    # 2 x A (6.67) + space (2.78) + 3 x Tc + 1 x Tw
    assert step["advance"] == pytest.approx(2 * 6.67 + 2.78 + 3 + 3)


def test_horizontal_scaling(iterator):
    (step,) = [s for s in steps(iterator, b"BT /F1 10 Tf 50 Tz (A) Tj ET") if s["operator"] == "Tj"]
    assert step["advance"] == pytest.approx(6.67 / 2)


def test_runs_honour_initial_ctm():
    iterator = make_iterator(ctm=(2, 0, 0, 2, 100, 0))
    (step,) = [s for s in steps(iterator, b"BT /F1 10 Tf (A) Tj ET") if s["operator"] == "Tj"]
    rect = step["text_runs"][0].rect
    assert rect.x == pytest.approx(100)
    assert rect.width == pytest.approx(13.34)


def test_empty_string_has_no_run(iterator):
    (step,) = [s for s in steps(iterator, b"BT /F1 10 Tf () Tj ET") if s["operator"] == "Tj"]
    assert step["text_runs"] == ()
    assert step["advance"] == 0


def test_unmapped_character(iterator):
    font = Mock()
    font.decode.return_value = [1]
    font.is_multibyte.return_value = False
    font.char_width.return_value = 0.5
    font.to_unichr.side_effect = PDFUnicodeNotDefined(None, 1)
    font.get_descent.return_value = -0.2
    font.get_ascent.return_value = 0.8
    font.basefont = "Custom"
    iterator.textstate.font = font
    iterator.textstate.fontsize = 10

    iterator.do_TJ([b"\x01"])

    assert iterator._runs[0].text == UNMAPPED_CHAR


def test_text_without_font(iterator):
    with pytest.raises(MalformedContentError):
        steps(iterator, b"BT (A) Tj ET")


def test_do_TJ_numeric_kerning(iterator):
    iterator.textstate.fontsize = 10
    iterator.textstate.scaling = 100
    iterator.textstate.matrix = [1, 0, 0, 1, 0, 0]
    iterator.textstate.font = Mock()
    iterator.textstate.font.get_descent.return_value = -0.2
    iterator.textstate.font.get_ascent.return_value = 0.8

    iterator.do_TJ([500])

    # -500 / 1000 * 10
    assert iterator.textstate.matrix[4] == -5.0
    assert iterator._runs == []
