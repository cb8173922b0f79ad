import sys
from pathlib import Path

import pikepdf
import pytest

# Setup path to import examples
EXAMPLES_DIR = Path(__file__).parent.parent / "examples"
sys.path.append(str(EXAMPLES_DIR))

import censor_pattern


@pytest.fixture
def input_pdf_path(tmp_path, create_pdf):
    stream = b"0 0 0 rg BT /F1 12 Tf 10 10 Td (This is a) Tj (Secret) Tj (message) Tj ET"
    pdf = create_pdf(stream)
    path = tmp_path / "input.pdf"
    pdf.save(path)
    return path


def test_censor_pattern_main(input_pdf_path, tmp_path, capsys):
    output = tmp_path / "censored.pdf"

    argv = ["censor_pattern.py", str(input_pdf_path), str(output), "Sec", "#c00"]
    assert censor_pattern.main(argv) == 0

    assert output.exists()
    assert "Censored 1 text run(s)" in capsys.readouterr().out

    content = _get_first_page_content(output)
    assert b"(Secret)" not in content
    assert b"(message) Tj" in content
    assert b"re" in content  # Box added


def test_censor_pattern_usage(capsys):
    assert censor_pattern.main(["censor_pattern.py"]) == 1
    assert "Usage" in capsys.readouterr().out


def _get_first_page_content(filename):
    with pikepdf.open(filename) as pdf:
        return b"".join(s.read_bytes() for s in pdf.pages[0].Contents)
