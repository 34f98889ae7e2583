"""
Premium-number classifier.

Rules are tested in order; the first pattern that matches supplies the reason.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class PremiumVerdict:
    is_premium: bool
    reason: str | None = None


NOT_PREMIUM = PremiumVerdict(is_premium=False)

PREMIUM_RULES: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern), reason)
    for pattern, reason in (
        (r"(\d)\1{3,}", "Four or more identical digits"),
        (r"8888", "Quad 8: fortune"),
        (r"6666", "Quad 6: smooth sailing"),
        (r"9999", "Quad 9: everlasting"),
        (r"518518", "518518: I will prosper"),
        (r"168168", "168168: prosper all the way"),
        (r"520", "520: I love you"),
        (r"1314", "1314: for a lifetime"),
        (r"518", "518: I will prosper"),
        (r"168", "168: prosper all the way"),
        (r"668", "668: prosper on every road"),
        (r"(\d)\1(\d)\2", "AABB pattern"),
        (r"(\d)(\d)\1\2", "ABAB pattern"),
        (r"(\d)\1{2}", "Triple digits"),
        (r"012|123|234|345|456|567|678|789", "Ascending run"),
        (r"987|876|765|654|543|432|321|210", "Descending run"),
        (r"88$", "Ends with 88"),
        (r"66$", "Ends with 66"),
        (r"99$", "Ends with 99"),
        (r"8$", "Ends with 8"),
        (r"6$", "Ends with 6"),
    )
)


def classify_number(number_value: str) -> PremiumVerdict:
    """Return the first matching premium rule for a number, if any."""
    if not number_value or len(number_value) < 2:
        return NOT_PREMIUM
    for pattern, reason in PREMIUM_RULES:
        if pattern.search(number_value):
            return PremiumVerdict(is_premium=True, reason=reason)
    return NOT_PREMIUM
