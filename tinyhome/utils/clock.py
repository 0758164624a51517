from datetime import datetime, timezone
from typing import Callable

# Services take a clock instead of calling datetime.now() so TTLs and
# "today" are deterministic under test.
Clock = Callable[[], datetime]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
