# tests/test_api.py
import pikepdf
import pytest

import pdfcensor
from pdfcensor import CensorOptions, Rectangle, censor_text, find_object_boxes, process

from .helpers import RecordingHandler, add_xobjects, font_resources, operators


def test_options_defaults():
    options = CensorOptions()
    assert options.recurse_xobjects
    assert options.max_depth == 32
    assert not options.keep_text_advance
    assert options.object_mark_color == (0.25, 0.25, 0.25)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_depth": 0},
        {"object_mark_line_width": 0},
        {"object_mark_color": (1, 0)},
        {"object_mark_color": (2, 0, 0)},
    ],
)
def test_options_validation(kwargs):
    with pytest.raises(ValueError):
        CensorOptions(**kwargs)


def test_censor_text_rejects_non_pdf():
    with pytest.raises(TypeError):
        censor_text("file.pdf", RecordingHandler())


def test_find_object_boxes_rejects_non_page():
    with pytest.raises(TypeError):
        find_object_boxes(None)


def test_pages_argument(create_pdf):
    pdf = create_pdf(b"BT /F1 12 Tf (A) Tj ET")
    pdf.add_blank_page()
    pdf.add_blank_page()

    for pages, expected in [
        (None, [0, 1, 2]),
        (1, [1]),
        (pdf.pages[2], [2]),
        ([0, pdf.pages[2]], [0, 2]),
    ]:
        assert list(censor_text(pdf, RecordingHandler(), pages=pages)) == expected

    with pytest.raises(TypeError):
        censor_text(pdf, RecordingHandler(), pages="all")
    with pytest.raises(TypeError):
        censor_text(pdf, RecordingHandler(), pages=[0, "1"])


def test_process_end_to_end(create_pdf, create_image, tmp_path):
    content = (
        b"BT /F1 12 Tf 20 150 Td (keep) Tj 0 -20 Td (drop) Tj ET\n"
        b"q 50 0 0 20 10 10 cm /Im1 Do Q"
    )
    pdf = create_pdf(content)
    add_xobjects(pdf.pages[0], Im1=create_image(pdf))

    report = process(pdf, RecordingHandler("drop"))

    assert report.censored_run_count == 1
    assert [r.rounded() for r in report.object_boxes[0]] == [Rectangle(10, 10, 50, 20)]

    page = pdf.pages[0]
    data = b"".join(s.read_bytes() for s in page.Contents)
    assert b"(drop)" not in data
    assert b"(keep)" in data
    # one filled box over the text, one crossed box over the image
    ops = operators(pdf, data)
    assert ops.count("f") == 1
    assert ops.count("S") == 1

    # The result is still a valid document
    path = tmp_path / "out.pdf"
    pdf.save(path)
    with pikepdf.open(path) as reopened:
        assert len(reopened.pages) == 1


def test_process_respects_cover_switches(create_pdf, create_image):
    pdf = create_pdf(b"BT /F1 12 Tf (x) Tj ET /Im1 Do")
    add_xobjects(pdf.pages[0], Im1=create_image(pdf))

    options = CensorOptions(cover_text=False, cover_objects=False)
    process(pdf, pdfcensor.RegexCensorPolicy(), options)

    assert isinstance(pdf.pages[0].Contents, pikepdf.Stream)
    assert operators(pdf, pdf.pages[0].Contents.read_bytes()) == ["BT", "Tf", "ET", "Do"]


def test_process_covers_shared_form_on_each_page(create_pdf, create_form):
    pdf = create_pdf(b"/Fm0 Do")
    form = create_form(pdf, b"BT /F1 12 Tf 5 5 Td (secret) Tj ET")
    second = pdf.add_blank_page(page_size=(200, 200))
    second.Contents = pdf.make_stream(b"/Fm0 Do")
    second.Resources = font_resources(pdf)
    for page in pdf.pages:
        add_xobjects(page, Fm0=form)

    report = process(pdf, RecordingHandler("secret"), CensorOptions(cover_objects=False))

    assert {i: len(marks) for i, marks in report.text_marks.items()} == {0: 1, 1: 1}
    assert report.censored_run_count == 2
    for page in pdf.pages:
        data = b"".join(s.read_bytes() for s in page.Contents)
        assert operators(pdf, data).count("f") == 1
