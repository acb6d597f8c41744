# weightscope/formats/dtypes.py
"""
SafeTensors element types and their storage widths.
"""
from __future__ import annotations

from enum import Enum
from fractions import Fraction
from typing import Dict

from weightscope.errors import UnknownDtype


class SafeTensorsDtype(str, Enum):
    """Element type tags as they appear in a safetensors header."""

    F64 = "F64"
    I64 = "I64"
    U64 = "U64"
    F32 = "F32"
    I32 = "I32"
    U32 = "U32"
    F16 = "F16"
    BF16 = "BF16"
    I16 = "I16"
    U16 = "U16"
    F8_E5M2 = "F8_E5M2"
    F8_E4M3 = "F8_E4M3"
    I8 = "I8"
    U8 = "U8"
    # 4-bit quantized, two elements packed per byte
    INT4 = "INT4"
    NF4 = "NF4"
    FP4 = "FP4"
    FP4_E2M1 = "FP4_E2M1"


# Bytes per element. Fractional widths cover packed sub-byte types.
DTYPE_BYTES: Dict[SafeTensorsDtype, Fraction] = {
    SafeTensorsDtype.F64: Fraction(8),
    SafeTensorsDtype.I64: Fraction(8),
    SafeTensorsDtype.U64: Fraction(8),
    SafeTensorsDtype.F32: Fraction(4),
    SafeTensorsDtype.I32: Fraction(4),
    SafeTensorsDtype.U32: Fraction(4),
    SafeTensorsDtype.F16: Fraction(2),
    SafeTensorsDtype.BF16: Fraction(2),
    SafeTensorsDtype.I16: Fraction(2),
    SafeTensorsDtype.U16: Fraction(2),
    SafeTensorsDtype.F8_E5M2: Fraction(1),
    SafeTensorsDtype.F8_E4M3: Fraction(1),
    SafeTensorsDtype.I8: Fraction(1),
    SafeTensorsDtype.U8: Fraction(1),
    SafeTensorsDtype.INT4: Fraction(1, 2),
    SafeTensorsDtype.NF4: Fraction(1, 2),
    SafeTensorsDtype.FP4: Fraction(1, 2),
    SafeTensorsDtype.FP4_E2M1: Fraction(1, 2),
}


def byte_width(tag: str) -> Fraction:
    """Return the per-element storage width of ``tag`` in bytes.

    Raises:
        UnknownDtype: ``tag`` is not a supported safetensors dtype.
    """
    try:
        return DTYPE_BYTES[SafeTensorsDtype(tag)]
    except ValueError:
        raise UnknownDtype(tag) from None
