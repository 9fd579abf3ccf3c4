"""Shareable game codes of the form LLL-DDD."""

import random
import re
from typing import Optional

from game.rules import CODE_DIGITS, CODE_LETTERS, CODE_PART_LENGTH

CODE_PATTERN = re.compile(r"^[A-HJ-NP-Z]{3}-[0-9]{3}$")


def generate_code(rng: Optional[random.Random] = None) -> str:
    """Three letters (no I/O), a hyphen, three digits. Uniqueness is the store's job."""
    rng = rng or random.Random()
    letters = "".join(rng.choice(CODE_LETTERS) for _ in range(CODE_PART_LENGTH))
    digits = "".join(rng.choice(CODE_DIGITS) for _ in range(CODE_PART_LENGTH))
    return f"{letters}-{digits}"


def normalize_code(code: str) -> str:
    """Codes are case-insensitive: strip and uppercase before lookup."""
    return code.strip().upper()


def is_valid_code(code: str) -> bool:
    return bool(CODE_PATTERN.match(code))
