"""Short code allocation

This module mints the 6-character public identifiers that key every record.

Functions:
    generate_shortcode() -> str:
        Draw a fresh random short code.
    is_valid_shortcode(value) -> bool:
        Check whether a value is a well-formed short code.
    validate_shortcode(value) -> str:
        Return the value unchanged or raise InvalidShortcodeError.

Example:
    >>> from seqre.utils import generate_shortcode
    >>> code = generate_shortcode()
    >>> len(code)
    6
    >>> is_valid_shortcode(code)
    True

NOTE:
    - Codes are unpredictable, not unique. Collisions are detected by the
      data store on insert and retried by the services.
    - The alphabet is URL safe: [a-zA-Z0-9_-].
"""

import secrets

from seqre.constants import ShortCode
from seqre.exceptions import InvalidShortcodeError


ALPHABET = ShortCode.ALPHABET
BASE = len(ALPHABET)

_ALLOWED = frozenset(ALPHABET)


def generate_shortcode(length: int = ShortCode.LENGTH) -> str:
    """Draw a random short code from the operating system CSPRNG.

    Each random byte is reduced modulo 64 onto the alphabet. Since 256 is a
    multiple of 64 the mapping carries no bias.

    Args:
        length (int, optional):
            Number of characters. Defaults to 6.

    Returns:
        str: freshly drawn short code.
    """
    return ''.join(ALPHABET[byte % BASE] for byte in secrets.token_bytes(length))


def is_valid_shortcode(value: object) -> bool:
    return isinstance(value, str) and len(value) == ShortCode.LENGTH and _ALLOWED.issuperset(value)


def validate_shortcode(value: object) -> str:
    """Validate a caller-supplied short code

    Raises:
        InvalidShortcodeError:
            If the value is not a string of 6 characters from the alphabet.
            A malformed code is invalid input, never a lookup miss.
    """
    if not is_valid_shortcode(value):
        raise InvalidShortcodeError(f'Invalid short code {value!r}: expected {ShortCode.LENGTH} characters from [a-zA-Z0-9_-].')
    return value
