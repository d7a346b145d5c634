"""
utils/validation_utils.py

Purpose: Input normalization

- Email normalization used for every account lookup
- Upload filename sanitization
- Airport code checks
"""

import re
from typing import Optional


def normalize_email(email: Optional[str]) -> str:
    """
    Lowercases and trims an email address.

    Every lookup and every stored pointer goes through this, so
    "A@B.com " and "a@b.com" resolve to the same account.
    """
    if not email:
        return ""
    return email.strip().lower()


def sanitize_filename(filename: Optional[str], max_length: int = 120) -> str:
    """
    Reduces an uploaded filename to a safe basename.

    Args:
        filename: Client-supplied filename
        max_length: Maximum length of the result

    Returns:
        Filename containing only letters, digits, dot, dash and underscore
    """
    if not filename:
        return "document"

    # Drop any client-side directory components
    name = re.split(r"[\\/]", filename)[-1]
    name = re.sub(r"[^A-Za-z0-9._-]", "_", name).strip("._")

    if not name:
        return "document"
    return name[-max_length:]


def is_valid_airport_code(code: Optional[str]) -> bool:
    """
    Checks for a three-letter IATA airport code.
    """
    if not code:
        return False
    return re.fullmatch(r"[A-Za-z]{3}", code.strip()) is not None
