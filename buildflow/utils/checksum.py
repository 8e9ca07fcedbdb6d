# buildflow/utils/checksum.py
import hashlib
from typing import Union


def calculate_checksum(content: Union[str, bytes]) -> str:
    """SHA256 checksum of text or bytes."""
    if isinstance(content, str):
        content = content.encode('utf-8')
    return hashlib.sha256(content).hexdigest()
