"""
Data validators for patient and test input.

Per-type test value formats, age range, phone number format.
"""

from __future__ import annotations

import re
from enum import Enum


class TestType(str, Enum):
    """Test types the record service knows how to read."""

    __test__ = False

    BLOOD_PRESSURE = "Blood Pressure"
    RESPIRATORY_RATE = "Respiratory Rate"
    BLOOD_OXYGEN_LEVEL = "Blood Oxygen Level"
    HEARTBEAT_RATE = "Heartbeat Rate"


# (pattern, human-readable example) per known type
VALUE_FORMATS: dict[TestType, tuple[re.Pattern[str], str]] = {
    TestType.BLOOD_PRESSURE: (re.compile(r"^\d{2,3}/\d{2,3}$"), "120/80"),
    TestType.RESPIRATORY_RATE: (re.compile(r"^\d{1,2}$"), "16"),
    TestType.BLOOD_OXYGEN_LEVEL: (re.compile(r"^\d{2,3}$"), "98"),
    TestType.HEARTBEAT_RATE: (re.compile(r"^\d{2,3}$"), "72"),
}

MIN_AGE = 0
MAX_AGE = 120


def known_test_type(test_type: str) -> TestType | None:
    """Match a type string against the vocabulary, ignoring case and padding."""
    wanted = test_type.strip().lower()
    for member in TestType:
        if member.value.lower() == wanted:
            return member
    return None


def check_test_value(test_type: str, value: str) -> str | None:
    """
    Check a test value against the format for its type.

    Returns None when the value is acceptable, otherwise a message suitable
    for showing next to the input.  Free-text types only need a non-blank
    value.
    """
    if not value or not value.strip():
        return "Please enter a value"

    member = known_test_type(test_type)
    if member is None:
        return None

    pattern, example = VALUE_FORMATS[member]
    if not pattern.match(value.strip()):
        return f"Enter a valid {member.value.lower()} (e.g., {example})"
    return None


def validate_test_value(test_type: str, value: str) -> bool:
    return check_test_value(test_type, value) is None


def validate_age(age: int) -> bool:
    return MIN_AGE <= age <= MAX_AGE


def validate_phone_number(phone: str) -> bool:
    """
    Validate a phone number.

    Exactly 10 digits once spaces, dashes and brackets are removed.
    """
    digits = re.sub(r"[\s\-()]", "", phone)
    return bool(re.fullmatch(r"\d{10}", digits))
