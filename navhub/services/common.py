import math
import re
from urllib.parse import urlparse

_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.\-]*$")
_NETWORK_SCHEMES = {"http", "https", "ftp", "ws", "wss"}
STORE_INT_MIN = -(2**63)
STORE_INT_MAX = 2**63 - 1


def is_valid_url(url) -> bool:
    if not isinstance(url, str):
        return False
    candidate = url.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    try:
        parsed = urlparse(candidate)
        parsed.port
    except ValueError:
        return False

    scheme = parsed.scheme.lower()
    if not scheme or not _SCHEME_PATTERN.match(scheme):
        return False
    if scheme in _NETWORK_SCHEMES:
        return bool(parsed.hostname)
    return bool(parsed.netloc or parsed.path)


def is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_store_int(value) -> bool:
    """True for a number that fits a signed 64-bit integer column."""
    return is_number(value) and STORE_INT_MIN <= value <= STORE_INT_MAX


def to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
