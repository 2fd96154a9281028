"""Case and image identifier generation."""

import secrets
import string

BASE36_ALPHABET = string.digits + string.ascii_uppercase

CASE_ID_PREFIX = "REG"
CASE_ID_SUFFIX_LENGTH = 9
IMAGE_ID_LENGTH = 9


def _base36_token(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_case_id(prefix: str = CASE_ID_PREFIX, length: int = CASE_ID_SUFFIX_LENGTH) -> str:
    """
    Generate a human-shareable case identifier such as ``REG-4F7K2Q9ZA``.

    Nine base-36 characters carry about 46 bits of entropy. Uniqueness is
    not checked against earlier identifiers.
    """
    return f"{prefix}-{_base36_token(length)}"


def generate_image_id(length: int = IMAGE_ID_LENGTH) -> str:
    return _base36_token(length).lower()
