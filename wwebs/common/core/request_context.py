"""
RequestContext management.
Use ContextVar to share the Request ID across async execution.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for Request ID (UUID or caller supplied).
_request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current Request ID."""
    return _request_id_var.get()


def generate_request_id() -> str:
    """
    Generate and set a new Request ID (UUID) for the current context.
    """
    new_id = str(uuid.uuid4())
    _request_id_var.set(new_id)
    return new_id


def set_request_id(request_id: str) -> str:
    """
    Set the Request ID from an incoming header.

    Args:
        request_id: X-Request-Id header value

    Returns:
        The Request ID that was set

    Raises:
        ValueError: if the value is empty or contains whitespace/control characters
    """
    candidate = request_id.strip()
    if not candidate or len(candidate) > 128 or not candidate.isprintable() or " " in candidate:
        raise ValueError(f"Invalid request id: {request_id!r}")
    _request_id_var.set(candidate)
    return candidate


def clear_request_id() -> None:
    """Clear the Request ID context."""
    _request_id_var.set(None)
