import re
import time
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import InvalidInput

_ID_RE = re.compile(r"^[0-9a-f]{32}$")

# largest value a 32-bit INTEGER column holds
MAX_SPACES = 2**31 - 1


# ----------------------------
# Helpers
# ----------------------------
def now_ts() -> float:
    return time.time()


def to_iso(ts: float | None) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and _ID_RE.match(value) is not None


def escape_like(value: str, escape: str = "\\") -> str:
    # make %, _ and the escape char match literally inside LIKE
    return (
        value.replace(escape, escape * 2)
             .replace("%", escape + "%")
             .replace("_", escape + "_")
    )


def require_text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{key} is required")
    return value.strip()


def parse_spaces(value: Any) -> int:
    """Accept a JSON number that is an integer in [0, MAX_SPACES]."""
    # bool is an int subclass; true/false are not seat counts
    if isinstance(value, bool):
        raise InvalidInput("spaces must be a non-negative integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise InvalidInput("spaces must be a non-negative integer")
    if value > MAX_SPACES:
        raise InvalidInput(f"spaces must not exceed {MAX_SPACES}")
    return value
