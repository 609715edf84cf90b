"""Flight code normalization."""

import re

_NOISE = re.compile(r"[^A-Z0-9]")
_CARRIER_AND_NUMBER = re.compile(r"^([A-Z]+)(\d+)$")


def normalize_flight_code(raw: str) -> str:
    """Return the canonical comparison key for a typed or scanned flight code.

    Case, spacing, scanner noise and leading zeros in the flight number are
    ignored, so " ba 0679", "BA00679" and "BA679" all become "BA679". Input
    that is not letters followed by digits is returned cleaned but otherwise
    unchanged. An empty result means there was nothing usable in the input.
    """
    cleaned = _NOISE.sub("", raw.strip().upper().replace(" ", ""))
    if not cleaned:
        return ""
    match = _CARRIER_AND_NUMBER.match(cleaned)
    if match is None:
        return cleaned
    prefix, digits = match.groups()
    return f"{prefix}{digits.lstrip('0') or '0'}"
