"""Shared validation utilities"""

import re
from typing import Optional

MAX_NOTES_LENGTH = 2000

PAYMENT_METHODS = {"cash", "card", "insurance", "bank_transfer"}


def validate_notes(notes: Optional[str]) -> Optional[str]:
    """
    Normalize free-text appointment notes.

    Returns None for blank input.

    Raises:
        ValueError: If the notes are too long
    """
    if notes is None:
        return None

    notes = notes.strip()
    if not notes:
        return None

    if len(notes) > MAX_NOTES_LENGTH:
        raise ValueError(f"Notes must be at most {MAX_NOTES_LENGTH} characters")

    return notes


def validate_payment_method(method: Optional[str]) -> str:
    """
    Validate and normalize a payment method, defaulting to cash.

    Raises:
        ValueError: If the method is not supported
    """
    if not method:
        return "cash"

    method = re.sub(r"[\s-]+", "_", method.strip().lower())
    if method not in PAYMENT_METHODS:
        raise ValueError(f"Unsupported payment method. Use one of: {', '.join(sorted(PAYMENT_METHODS))}")

    return method
