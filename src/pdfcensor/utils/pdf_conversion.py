# src/pdfcensor/utils/pdf_conversion.py
from decimal import Decimal
from typing import Any, Sequence, Tuple

import numpy as np
import pikepdf
from pdfminer.pdftypes import PDFStream
from pdfminer.psparser import LIT, PSKeyword, PSLiteral

Matrix = Tuple[float, float, float, float, float, float]

IDENTITY: Matrix = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)

# Resource categories pdfminer needs to interpret a content stream. XObjects
# are resolved on the pikepdf side, so their (possibly huge) image data is
# never copied into pdfminer.
MINER_RESOURCE_KEYS = ("/Font", "/ColorSpace", "/ProcSet")


def miner_matrix_to_np(m: Sequence) -> np.ndarray:
    # safeguard
    if isinstance(m, np.ndarray):
        return m
    return np.array(
        [[m[0], m[1], 0], [m[2], m[3], 0], [m[4], m[5], 1]], dtype=float
    )


def np_to_miner_matrix(m: np.ndarray) -> Matrix:
    """Convert a 3x3 row-vector matrix back to pdfminer's 6-tuple form."""
    return (
        float(m[0, 0]),
        float(m[0, 1]),
        float(m[1, 0]),
        float(m[1, 1]),
        float(m[2, 0]),
        float(m[2, 1]),
    )


def concat_matrices(inner: Sequence, outer: Sequence) -> Matrix:
    """Returns ``inner x outer``: apply ``inner`` first, then ``outer``."""
    return np_to_miner_matrix(miner_matrix_to_np(inner) @ miner_matrix_to_np(outer))


def invert_matrix(m: Sequence) -> Matrix:
    """Raises ``numpy.linalg.LinAlgError`` for a singular matrix."""
    return np_to_miner_matrix(np.linalg.inv(miner_matrix_to_np(m)))


def pdf_matrix(obj: Any, default: Matrix = IDENTITY) -> Matrix:
    """Reads a 6-element PDF array (e.g. a form's /Matrix) as floats."""
    if obj is None:
        return default
    values = [float(v) for v in obj]
    if len(values) != 6:
        raise ValueError(f"Expected a 6-element matrix, got {values!r}")
    return tuple(values)  # type: ignore[return-value]


def normalize_pdf_operand(operand: Any) -> Any:
    """
    Converts pdfminer-specific types (PSLiteral) into pikepdf-compatible types.
    """
    if isinstance(operand, (PSLiteral, PSKeyword)):
        name = operand.name
        if isinstance(name, bytes):
            name = name.decode("ascii")
        return pikepdf.Name(f"/{name}")
    if isinstance(operand, bytes):
        return operand
    if isinstance(operand, list):
        return [normalize_pdf_operand(x) for x in operand]
    return operand


def to_pikepdf_operand(operand: Any) -> Any:
    """Prepares a normalized operand for ``pikepdf.unparse_content_stream``."""
    if isinstance(operand, bytes):
        return pikepdf.String(operand)
    if isinstance(operand, (list, tuple)):
        return pikepdf.Array([to_pikepdf_operand(x) for x in operand])
    if isinstance(operand, dict):
        return pikepdf.Dictionary(
            {
                (k if str(k).startswith("/") else f"/{k}"): to_pikepdf_operand(v)
                for k, v in operand.items()
            }
        )
    return operand


def extract_string_bytes(operand: Any) -> bytes:
    """
    Helper to get raw bytes from various string representations.
    Handles fallback to UTF-8 if the string contains special characters.
    """
    if isinstance(operand, bytes):
        return operand

    if isinstance(operand, str):
        try:
            return operand.encode("latin1")
        except UnicodeEncodeError:
            return operand.encode("utf-8")

    if isinstance(operand, (int, float, Decimal)):
        return str(operand).encode("ascii")

    # Duck typing: check for .as_bytes() (e.g. Mocks, older pikepdf)
    if not isinstance(operand, pikepdf.Object) and hasattr(operand, "as_bytes"):
        return operand.as_bytes()

    return bytes(operand)


def convert_to_pdfminer_resources(obj: Any, strip_slash=False) -> Any:
    """Recursively converts pikepdf resources to types pdfminer understands."""
    result = obj
    if isinstance(obj, pikepdf.Dictionary):
        result = {
            convert_to_pdfminer_resources(
                k, strip_slash=True
            ): convert_to_pdfminer_resources(v)
            for k, v in obj.items()
        }
    elif isinstance(obj, pikepdf.Array):
        result = [convert_to_pdfminer_resources(v) for v in obj]
    elif isinstance(obj, pikepdf.Stream):
        attrs = convert_to_pdfminer_resources(obj.stream_dict)
        # Raw (possibly compressed) bytes: pdfminer applies /Filter itself.
        result = PDFStream(attrs, obj.read_raw_bytes())
    elif isinstance(obj, (str, pikepdf.String)):
        s = str(obj)
        if strip_slash and s.startswith("/"):
            result = s[1:]
        else:
            result = s
    elif isinstance(obj, pikepdf.Name):
        result = LIT(str(obj)[1:])
    elif isinstance(obj, Decimal):
        result = float(obj)
    return result


def miner_resources_for(resources: Any) -> dict:
    """Converts only the resource categories the interpreter needs."""
    if not isinstance(resources, pikepdf.Dictionary):
        return {}
    converted = {}
    for key in MINER_RESOURCE_KEYS:
        if key in resources:
            converted[key[1:]] = convert_to_pdfminer_resources(resources[key])
    return converted
