from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from starlette.requests import Request

from .settings import Settings

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
ALLOWED_HEADERS = [
    "X-CSRF-Token",
    "X-Requested-With",
    "Accept",
    "Accept-Version",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "X-Api-Version",
    "Authorization",
]


# PUBLIC_INTERFACE
def list_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    persisted: bool,
    total: int,
    limit: Optional[int],
    offset: int,
) -> Dict[str, Any]:
    """
    Build the standard envelope for the task list endpoint.

    Args:
        items: The tasks for the current page.
        persisted: Whether the tasks came from the real store.
        total: Number of tasks owned by the caller (ignoring pagination).
        limit: The limit used for pagination, or None when unbounded.
        offset: The offset used for pagination.

    Returns:
        Dict with keys: tasks, persisted, total, limit, offset.
    """
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return {
        "tasks": materialized,
        "persisted": bool(persisted),
        "total": int(total),
        "limit": None if limit is None else int(max(limit, 0)),
        "offset": int(max(offset, 0)),
    }


# PUBLIC_INTERFACE
def cors_headers(request: Request, settings: Settings) -> Dict[str, str]:
    """
    Return the CORS headers attached to every response.

    With '*' configured every origin is allowed and the request Origin is echoed back
    (a literal '*' is not valid alongside Allow-Credentials). Otherwise a listed request
    Origin is echoed back and unlisted origins receive the first configured one.
    """
    origins = settings.cors_allow_origins
    headers = {
        "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
        "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
        "Access-Control-Allow-Credentials": "true",
    }
    origin = request.headers.get("origin")
    if not origins or origins == ["*"]:
        if not origin:
            headers["Access-Control-Allow-Origin"] = "*"
            return headers
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
        return headers

    headers["Access-Control-Allow-Origin"] = origin if origin in origins else origins[0]
    headers["Vary"] = "Origin"
    return headers
