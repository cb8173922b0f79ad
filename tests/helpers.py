# tests/helpers.py
"""Builders for small PDFs, shared by fixtures and property tests."""

from typing import List, Optional, Sequence, Tuple

import pikepdf

from pdfcensor import BaseCensorHandler

HELVETICA = dict(
    Type=pikepdf.Name.Font,
    Subtype=pikepdf.Name.Type1,
    BaseFont=pikepdf.Name.Helvetica,
    Encoding=pikepdf.Name.WinAnsiEncoding,
)


def font_resources(pdf: pikepdf.Pdf) -> pikepdf.Dictionary:
    return pikepdf.Dictionary(
        Font=pikepdf.Dictionary(F1=pdf.make_indirect(pikepdf.Dictionary(**HELVETICA)))
    )


def make_pdf(content: bytes, page_size=(200, 200)) -> pikepdf.Pdf:
    """A 1-page PDF whose page has ``content`` and a Helvetica /F1."""
    pdf = pikepdf.new()
    page = pdf.add_blank_page(page_size=page_size)
    page.Contents = pdf.make_stream(content)
    page.Resources = font_resources(pdf)
    return pdf


def make_image(pdf: pikepdf.Pdf, stencil: bool = False) -> pikepdf.Stream:
    """A 1x1 image XObject (or stencil mask)."""
    image = pdf.make_stream(b"\x00")
    image.Type = pikepdf.Name.XObject
    image.Subtype = pikepdf.Name.Image
    image.Width = 1
    image.Height = 1
    if stencil:
        image.ImageMask = True
        image.BitsPerComponent = 1
    else:
        image.ColorSpace = pikepdf.Name.DeviceGray
        image.BitsPerComponent = 8
    return image


def make_form(
    pdf: pikepdf.Pdf,
    content: bytes,
    bbox: Sequence[float] = (0, 0, 100, 100),
    matrix: Optional[Sequence[float]] = None,
    group: bool = False,
    xobjects: Optional[dict] = None,
) -> pikepdf.Stream:
    """A form XObject; a transparency group if ``group``."""
    # pylint: disable=too-many-arguments, too-many-positional-arguments
    form = pdf.make_stream(content)
    form.Type = pikepdf.Name.XObject
    form.Subtype = pikepdf.Name.Form
    form.BBox = list(bbox)
    if matrix is not None:
        form.Matrix = list(matrix)
    if group:
        form.Group = pikepdf.Dictionary(S=pikepdf.Name.Transparency)
    if xobjects is not None:
        resources = font_resources(pdf)
        resources.XObject = pikepdf.Dictionary(**xobjects)
        form.Resources = resources
    return form


def add_xobjects(page: pikepdf.Page, **xobjects) -> None:
    page.Resources.XObject = pikepdf.Dictionary(**xobjects)


def page_content(pdf: pikepdf.Pdf, index: int = 0) -> bytes:
    return pdf.pages[index].Contents.read_bytes()


def instructions(pdf: pikepdf.Pdf, data: bytes) -> List[Tuple[list, str]]:
    """Parses ``data`` into ``(operands, operator)`` pairs."""
    stream = pdf.make_stream(data)
    return [
        (list(instruction.operands), str(instruction.operator))
        for instruction in pikepdf.parse_content_stream(stream)
    ]


def operators(pdf: pikepdf.Pdf, data: bytes) -> List[str]:
    return [op for _, op in instructions(pdf, data)]


def canonical(pdf: pikepdf.Pdf, data: bytes) -> bytes:
    """``data`` re-serialized by pikepdf, so whitespace differences vanish."""
    stream = pdf.make_stream(data)
    return pikepdf.unparse_content_stream(pikepdf.parse_content_stream(stream))


class RecordingHandler(BaseCensorHandler):
    """Censors runs whose text is in ``texts``; records everything it sees."""

    def __init__(self, *texts: str):
        self.texts = set(texts)
        self.runs = []
        self.events = []

    def should_censor(self, run):
        self.runs.append(run)
        return run.text in self.texts

    def on_begin_document(self, pdf):
        self.events.append(("begin_document",))

    def on_begin_page(self, page_number, page_count):
        self.events.append(("begin_page", page_number, page_count))

    def on_end_page(self, page_number):
        self.events.append(("end_page", page_number))

    def on_end_document(self, pdf):
        self.events.append(("end_document",))


class CensorByIndex(BaseCensorHandler):
    """Censors the n-th run of the document for every n in ``indices``."""

    def __init__(self, indices):
        self.indices = set(indices)
        self.calls = 0

    def should_censor(self, run):
        index = self.calls
        self.calls += 1
        return index in self.indices
