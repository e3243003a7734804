"""Rate limiting for message sending, using slowapi."""

from slowapi import Limiter
from slowapi.util import get_remote_address

# IP-keyed; only the send endpoint is decorated
limiter = Limiter(key_func=get_remote_address)


def reset_limiter() -> None:
    """Reset the limiter storage. Used in tests to clear rate limit state."""
    if hasattr(limiter, "_limiter") and limiter._limiter:
        storage = limiter._limiter.storage
        if hasattr(storage, "reset"):
            storage.reset()
    if hasattr(limiter, "_storage") and limiter._storage:
        limiter._storage.reset()
