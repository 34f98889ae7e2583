"""
Premium classifier tests.

Rules are ordered; the first pattern that matches decides the reason.
"""

import pytest

from campus_sim.services.premium import NOT_PREMIUM, PREMIUM_RULES, classify_number


@pytest.mark.parametrize(
    "number_value, reason",
    [
        ("13700000000", "Four or more identical digits"),
        ("13988881234", "Four or more identical digits"),
        ("13752013140", "520: I love you"),
        ("13702040518", "518: I will prosper"),
        ("13912345670", "Ascending run"),
        ("13800138000", "Triple digits"),
        ("13702040516", "Ends with 6"),
    ],
)
def test_first_matching_rule_wins(number_value, reason):
    verdict = classify_number(number_value)
    assert verdict.is_premium is True
    assert verdict.reason == reason


def test_ordinary_number_is_not_premium():
    assert classify_number("13702040501") == NOT_PREMIUM
    assert classify_number("13800138001").is_premium is False


def test_quad_eight_is_shadowed_by_identical_digit_rule():
    reasons = [reason for _, reason in PREMIUM_RULES]
    assert reasons.index("Four or more identical digits") < reasons.index("Quad 8: fortune")


def test_empty_and_single_digit_values():
    assert classify_number("") == NOT_PREMIUM
    assert classify_number("8") == NOT_PREMIUM
