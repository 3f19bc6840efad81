"""
Generated database credentials
Passwords are always generated, never read from configuration
"""

import pulumi_random as random

from .config import Defaults

FORBIDDEN_PASSWORD_CHARS = '/@" '


def create_database_password(name: str, length: int,
                             special_chars: str = Defaults.DB_PASSWORD_SPECIAL_CHARS) -> random.RandomPassword:
    """
    Random password limited to the characters the managed databases accept

    Args:
        name: Resource name
        length: Exact password length
        special_chars: Special characters the password may contain

    Raises:
        ValueError: non-positive length, or special characters the databases reject
    """
    if length < 1:
        raise ValueError(f"Password length must be positive, got {length}")
    rejected = sorted(set(special_chars) & set(FORBIDDEN_PASSWORD_CHARS))
    if rejected:
        raise ValueError(f"Password special characters not accepted by the database: {rejected}")

    return random.RandomPassword(
        name,
        length=length,
        special=True,
        override_special=special_chars)
