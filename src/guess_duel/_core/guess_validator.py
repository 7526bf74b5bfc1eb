# Area: Core
"""
guess_duel._core.guess_validator — Local guess validation
=========================================================

Validates a candidate guess against the digit count of the session's
level before anything is sent to the Session Service. Rules are
checked in order and the first failure wins.
"""

from __future__ import annotations

from typing import Dict

from .enums import ValidationCode
from ..errors import GuessValidationError

# Level table: level -> number of digits in the secret and every guess
LEVEL_DIGITS: Dict[int, int] = {
    1: 2,
    2: 3,
    3: 4,
}

DEFAULT_DIGITS = 2

_DECIMAL_DIGITS = frozenset("0123456789")


def digits_for_level(level: int) -> int:
    """Digit count for a level; unknown levels fall back to two digits."""
    return LEVEL_DIGITS.get(level, DEFAULT_DIGITS)


def check_guess(text: str, expected_digits: int) -> ValidationCode | None:
    """
    Return the first rule the input breaks, or None when it is valid.

    Args:
        text: Raw user input
        expected_digits: Digit count required by the level

    Returns:
        EMPTY, WRONG_LENGTH or NOT_NUMERIC, or None
    """
    candidate = (text or "").strip()
    if not candidate:
        return ValidationCode.EMPTY
    if len(candidate) != expected_digits:
        return ValidationCode.WRONG_LENGTH
    if not all(ch in _DECIMAL_DIGITS for ch in candidate):
        return ValidationCode.NOT_NUMERIC
    return None


def validate_guess(text: str, expected_digits: int) -> str:
    """
    Validate a guess and return it trimmed.

    Raises:
        GuessValidationError: carrying the code of the first failed rule
    """
    code = check_guess(text, expected_digits)
    if code is not None:
        raise GuessValidationError(code, expected_digits, value=text or "")
    return text.strip()
