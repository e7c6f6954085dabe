import math
import secrets
import string
from datetime import UTC, datetime

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def now() -> datetime:
    return datetime.now(UTC)


def to_epoch_ms(value: datetime) -> int:
    return math.floor(value.timestamp() * 1000)


def random_suffix(length: int = 6) -> str:
    """Short random key suffix used to keep write-once keys unique."""
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(length))
