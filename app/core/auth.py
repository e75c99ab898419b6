"""Request user resolution.

Authentication happens upstream (session provider / gateway), which forwards
the authenticated user's numeric id in the ``X-User-Id`` header.
"""

from fastapi import Header, HTTPException


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> int:
    """Return the authenticated user id or raise 401."""
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return int(x_user_id.strip())
