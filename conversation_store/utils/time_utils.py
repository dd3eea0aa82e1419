import random
import string
import time
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def now_iso(tz_name: str) -> str:
    """Current instant as ISO-8601 with the offset of the named timezone."""
    return datetime.now(ZoneInfo(tz_name)).isoformat(timespec="microseconds")


def parse_iso(value) -> datetime:
    """Parse a stored timestamp for ordering; unparseable values sort first."""
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def generate_message_id() -> str:
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=9))
    return f"msg_{int(time.time() * 1000)}_{suffix}"
