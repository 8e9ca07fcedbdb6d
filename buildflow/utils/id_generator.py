# buildflow/utils/id_generator.py
import time
import uuid
from datetime import datetime, timezone


def generate_id() -> str:
    """Short unique id for history entries, versions and sessions."""
    return uuid.uuid4().hex[:12]


def generate_timestamp() -> float:
    return time.time()


def format_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
