"""
Acting identity supplied with every mutation.
"""

from dataclasses import dataclass
from typing import Optional

from .errors import AuthorizationError


@dataclass(frozen=True)
class Actor:
    """The user a mutation is attributed to."""
    user_id: str
    username: str


def require_actor(actor: Optional[Actor]) -> Actor:
    """Return ``actor`` or raise if no usable identity was supplied.

    Raises:
        AuthorizationError: If actor is missing or has an empty user_id
    """
    if actor is None or not str(actor.user_id or "").strip():
        raise AuthorizationError("An acting user is required for mutations")
    return actor
