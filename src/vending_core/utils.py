"""Shared utilities for the sales pipeline.

This module provides small, reusable helpers:

- Text cleanup: invisible characters, HTML entities, accents
- Number parsing: robust handling of the price formats vendors emit
- Timing: human-readable durations for log lines

Examples:
    >>> from vending_core.utils import to_decimal, normalize_token
    >>> to_decimal("3,50 €")
    Decimal('3.50')
    >>> normalize_token("  Tarjeta Crédito ")
    'tarjeta credito'
"""

from __future__ import annotations

import html
import math
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

# Unicode characters that should be stripped from text
NBSP = "\u00a0"  # Non-breaking space
NNBSP = "\u202f"  # Narrow non-breaking space
ZW = "".join(chr(c) for c in (0x200B, 0x200C, 0x200D, 0xFEFF))  # Zero-width characters

# Strip currency symbols while preserving number separators
_CURRENCY_RE = re.compile(r"[^\d,.\-\(\)\s]")


# ============================================================================
# Text
# ============================================================================


def strip_invisibles(x: Any) -> Optional[str]:
    """Remove invisible and problematic whitespace characters from text.

    Returns:
        Cleaned string or None if input is None/NaN.

    Examples:
        >>> strip_invisibles("  Hello World  ")
        'Hello World'
    """
    if x is None or (isinstance(x, float) and math.isnan(x)):
        return None
    s = str(x)
    s = s.replace("\r", "").replace("\t", " ").replace(NBSP, " ").replace(NNBSP, " ")
    s = re.sub(r"[%s]" % re.escape(ZW), "", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def decode_entities(text: Any) -> str:
    """Decode HTML entities left by the vendor's CMS and tidy whitespace.

    Entities are decoded repeatedly so double-escaped text ("&amp;ntilde;")
    also comes out clean.

    Examples:
        >>> decode_entities("Caf&eacute; &amp; Pi&ntilde;a")
        'Café & Piña'
    """
    s = strip_invisibles(text) or ""
    for _ in range(3):
        decoded = html.unescape(s)
        if decoded == s:
            break
        s = decoded
    return strip_invisibles(s) or ""


def remove_accents(s: str) -> str:
    """Remove accents and diacritics from string.

    Examples:
        >>> remove_accents("Metálico")
        'Metalico'
    """
    return "".join(c for c in unicodedata.normalize("NFD", s) if unicodedata.category(c) != "Mn")


def normalize_token(s: Any) -> str:
    """Normalize free text for case- and accent-insensitive matching."""
    base = decode_entities(s)
    base = remove_accents(base)
    return re.sub(r"\s+", " ", base).strip().lower()


# ============================================================================
# Numbers
# ============================================================================


def to_decimal(x: Any) -> Optional[Decimal]:
    """Robustly parse a money amount into a Decimal rounded to cents.

    Handles the formats the vendor API and the store emit:
    - Plain numbers: 3.5, "3.50"
    - EU format: "1.234,56", "3,50"
    - US format: "1,234.56"
    - Currency symbols: "3,50 €"

    Returns:
        Parsed Decimal or None if parsing fails.

    Examples:
        >>> to_decimal("1.234,56")
        Decimal('1234.56')
        >>> to_decimal(None) is None
        True
    """
    if x is None or isinstance(x, bool):
        return None
    if isinstance(x, Decimal):
        return x.quantize(Decimal("0.01")) if x.is_finite() else None
    if isinstance(x, (int, float)):
        if isinstance(x, float) and (math.isnan(x) or math.isinf(x)):
            return None
        return Decimal(str(x)).quantize(Decimal("0.01"))

    s = str(x).strip()
    if not s:
        return None

    neg = False
    if s.startswith("(") and s.endswith(")"):
        neg, s = True, s[1:-1].strip()

    s = _CURRENCY_RE.sub("", s)
    s = re.sub(r"\s+", "", s)
    if not s:
        return None

    if re.fullmatch(r"-?\d{1,3}(?:\.\d{3})+,\d{1,2}", s):
        s = s.replace(".", "").replace(",", ".")
    elif re.fullmatch(r"-?\d{1,3}(?:,\d{3})+\.\d{1,2}", s):
        s = s.replace(",", "")
    elif "," in s and "." not in s:
        s = s.replace(",", ".")

    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    value = value.quantize(Decimal("0.01"))
    return -value if neg else value


def to_int(x: Any) -> Optional[int]:
    """Parse a whole number ("2", 2.0, "2,0"); None if not parseable.

    Examples:
        >>> to_int("3")
        3
        >>> to_int("abc") is None
        True
    """
    if x is None or isinstance(x, bool):
        return None
    d = to_decimal(x)
    if d is None:
        return None
    return int(d.to_integral_value())


# ============================================================================
# Timing
# ============================================================================


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as a human-readable string.

    Examples:
        >>> format_duration(90.5)
        '1m 30.5s'
        >>> format_duration(45.2)
        '45.2s'
    """
    mins, secs = divmod(seconds, 60.0)
    if mins >= 1:
        return f"{int(mins)}m {secs:04.1f}s"
    else:
        return f"{secs:.1f}s"

