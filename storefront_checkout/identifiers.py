"""
Identifier helpers shared by logging call sites.
"""
import hashlib


def hash_identifier(identifier: str) -> str:
    """Hash identifier for logging (no PII)"""
    if not identifier:
        return "none"
    return hashlib.sha256(identifier.encode()).hexdigest()[:8]
