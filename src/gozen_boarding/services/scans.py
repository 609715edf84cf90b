"""Scan verification against a session's flight code."""

from gozen_boarding.domain.codes import normalize_flight_code
from gozen_boarding.domain.scans import ScanOutcome, ScanStatus


def verify_scan(scanned_raw: str, expected: str) -> ScanOutcome:
    """Compare a freshly scanned code with the code the session is bound to."""
    scanned = normalize_flight_code(scanned_raw)
    expected_code = normalize_flight_code(expected)
    if not scanned:
        status = ScanStatus.EMPTY
    elif scanned == expected_code:
        status = ScanStatus.MATCH
    else:
        status = ScanStatus.MISMATCH
    return ScanOutcome(status=status, scanned=scanned, expected=expected_code)
