"""Input validation loop for the principal name prompt."""

from typing import Callable, Optional


def is_principal_name(value: Optional[str]) -> bool:
    """Syntactic check only: an email-shaped principal contains '@'."""
    return bool(value) and '@' in value.strip()


def read_until(predicate: Callable[[str], bool], source: Callable[[], str],
               on_invalid: Optional[Callable[[str], None]] = None) -> str:
    """
    Read values from source until one satisfies predicate.

    Args:
        predicate: Validation function
        source: Zero-argument callable returning the next raw value (e.g. input)
        on_invalid: Called with each rejected value

    Returns:
        str: The first accepted value, stripped
    """
    while True:
        value = (source() or '').strip()
        if predicate(value):
            return value
        if on_invalid is not None:
            on_invalid(value)
