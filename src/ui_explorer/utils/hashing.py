"""
Short content hashes used for state identity.
"""

import hashlib


def short_hash(text: str, length: int = 16) -> str:
    """First ``length`` hex chars of the SHA-256 of ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:length]
