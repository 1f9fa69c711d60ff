"""
Common utility functions shared across the application.
"""

from fastapi import Request
from slowapi.util import get_remote_address


def get_session_or_ip(request: Request) -> str:
    """Get flow session ID for rate limiting, fallback to IP."""
    session_id = request.path_params.get("session_id")
    if session_id:
        return f"flow:{session_id}"
    return get_remote_address(request)
