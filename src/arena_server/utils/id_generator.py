"""Short, roughly time-ordered identifiers for events and domain entities."""

import secrets
import string
import time

BASE36_ALPHABET = string.digits + string.ascii_lowercase
RANDOM_ALPHABET = string.ascii_letters + string.digits


def generate_short_id(length: int = 16, prefix: str = "") -> str:
    """Generate an id made of a base36 millisecond timestamp and random characters.

    Ids generated later sort after earlier ones as long as the timestamp part
    keeps its width, which holds until the year 2059.

    Args:
        length: Length of the id without the prefix
        prefix: Entity prefix, e.g. ``"mt"`` gives ``"mt_l3x9..."``

    Returns:
        The id, ``<prefix>_<body>`` when a prefix is given
    """
    timestamp = to_base36(int(time.time() * 1000))
    random_part = "".join(secrets.choice(RANDOM_ALPHABET) for _ in range(length))
    body = (timestamp + random_part)[:length].ljust(length, "0")
    return f"{prefix}_{body}" if prefix else body


def to_base36(number: int) -> str:
    """Convert a non-negative integer to base36."""
    if number < 0:
        raise ValueError(f"Cannot convert negative number to base36: {number}")

    base36 = ""
    while number:
        number, i = divmod(number, 36)
        base36 = BASE36_ALPHABET[i] + base36
    return base36 or "0"


def from_base36(value: str) -> int:
    """Inverse of ``to_base36``."""
    return int(value, 36)
