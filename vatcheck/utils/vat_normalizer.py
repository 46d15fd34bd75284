"""Input and response-field normalization for VAT numbers.

Registries are inconsistent about what they send back: VIES answers
``"---"`` when a member state does not disclose a trader's name, isvat
wraps strings in single-element indexed containers, and free-text
addresses arrive with embedded newlines.  The helpers here fold all of
that into plain ``str | None`` values.
"""

from __future__ import annotations

import re
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")

# Placeholder values registries use instead of an empty field.
_PLACEHOLDERS = frozenset({"", "---", "--", "-", "n/a"})


def normalize_code(value: str) -> str:
    """Strip and upper-case a VAT number or country code."""
    return value.strip().upper()


def strip_country_prefix(vat_input: str, country_code: str) -> str:
    """Remove a leading country prefix, e.g. ``"ESB12345678"`` -> ``"B12345678"``."""
    vat = normalize_code(vat_input).replace(" ", "")
    country = normalize_code(country_code)
    if country and vat.startswith(country):
        return vat[len(country):]
    return vat


def split_vat_code(vat_code: str) -> tuple[str, str]:
    """Split a full ``CCNUMBER`` VAT code into ``(country_code, vat_number)``.

    Raises
    ------
    ValueError
        If *vat_code* is too short to carry a country prefix and a number.
    """
    code = normalize_code(vat_code).replace(" ", "")
    if len(code) < 4 or not code[:2].isalpha():
        msg = f"Invalid VAT code format: {vat_code!r}"
        raise ValueError(msg)
    return code[:2], code[2:]


def unwrap_indexed(value: Any) -> Any:
    """Return the single element of a one-item list or ``{"0": x}`` mapping.

    Anything else is returned unchanged.
    """
    if isinstance(value, list) and len(value) == 1:
        return value[0]
    if isinstance(value, dict) and len(value) == 1:
        key = next(iter(value))
        if str(key) == "0":
            return value[key]
    return value


def clean_text(value: Any) -> str | None:
    """Normalize a name/address field to a single-line string or ``None``."""
    value = unwrap_indexed(value)
    if value is None or isinstance(value, (dict, list)):
        return None
    text = _WHITESPACE_RE.sub(" ", str(value)).strip()
    if text.lower() in _PLACEHOLDERS:
        return None
    return text
