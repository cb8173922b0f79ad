# src/pdfcensor/utils/__init__.py
"""
Utility modules for data conversion and geometric calculations.
"""
from .pdf_conversion import (
    concat_matrices,
    extract_string_bytes,
    invert_matrix,
    normalize_pdf_operand,
)
from .pdf_geometry import Rectangle, transform_rect

__all__ = [
    "Rectangle",
    "concat_matrices",
    "extract_string_bytes",
    "invert_matrix",
    "normalize_pdf_operand",
    "transform_rect",
]
