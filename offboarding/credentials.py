"""Throwaway password generation for credential resets."""

import secrets
import string

MIN_PASSWORD_LENGTH = 20
DEFAULT_PASSWORD_LENGTH = 24

PASSWORD_ALPHABET = (
    string.ascii_uppercase
    + string.ascii_lowercase
    + string.digits
    + string.punctuation
)


def generate_password(length: int = DEFAULT_PASSWORD_LENGTH) -> str:
    """
    Generate a random password drawn from all four character classes.

    Individual passwords are not guaranteed to contain every class.

    Args:
        length: Number of characters, at least MIN_PASSWORD_LENGTH

    Returns:
        str: The generated password
    """
    if length < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password length must be at least {MIN_PASSWORD_LENGTH}, got {length}")
    return ''.join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
