"""Prefixed ID generation utility."""

import secrets
import uuid


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID.

    Args:
        prefix: The prefix (e.g., "usr_", "org_", "inv_").

    Returns:
        A string like "org_a1b2c3d4e5f6a7b8".
    """
    short_uuid = uuid.uuid4().hex[:16]
    return f"{prefix}{short_uuid}"


def generate_token(nbytes: int = 32) -> str:
    """URL-safe random token for invitation links."""
    return secrets.token_urlsafe(nbytes)
