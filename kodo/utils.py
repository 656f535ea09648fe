import re
import time
from datetime import UTC, datetime
from uuid import uuid4


def truncate(value: str, max_len: int) -> str:
    if len(value) <= max_len:
        return value
    return value[: max_len - 3] + "..."


def ms_now() -> int:
    return time.monotonic_ns() // 1_000_000


def iso_now() -> str:
    return datetime.now(UTC).isoformat()


def new_uuid() -> str:
    return str(uuid4())


def sanitize_path_component(value: str) -> str:
    """Turn an arbitrary path into a single safe directory name."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", value).strip("-")
    return cleaned or "root"
