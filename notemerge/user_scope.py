"""Who is calling, and which part of the library they may touch.

Every user works inside ``<library>/users/<normalized id>``; nothing in this
service reads or writes outside that directory.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from fastapi import Request

from notemerge.config import DEFAULT_LOCK_TIMEOUT, MergeLimits
from notemerge.errors import McpError

USER_ID_HEADER = "X-Notemerge-User-Id"
SERVICE_TOKEN_HEADER = "X-Notemerge-Service-Token"
AUTH_EXEMPT_PATHS = {"/health"}

_VALID_USER_ID = re.compile(r"^[A-Za-z0-9_]{3,128}$")


def _identity_required() -> McpError:
    return McpError(
        "AUTH_REQUIRED",
        "Missing required user identity header.",
        {"header": USER_ID_HEADER},
    )


def _app_config(request: Request) -> Any:
    return getattr(request.app.state, "config", None)


def normalize_user_id(raw_user_id: str) -> str:
    """Strip dashes from a user id and check what is left is a safe dirname."""
    if not isinstance(raw_user_id, str):
        raise McpError(
            "INVALID_USER_ID",
            "User id must be a string.",
            {"type": type(raw_user_id).__name__},
        )
    user_id = raw_user_id.strip().replace("-", "")
    if not user_id:
        raise _identity_required()
    if _VALID_USER_ID.fullmatch(user_id) is None:
        raise McpError(
            "INVALID_USER_ID",
            "User id contains invalid characters.",
            {"user_id": raw_user_id},
        )
    return user_id


def resolve_user_library_root(base_root: Path, user_id: str) -> Path:
    return base_root / "users" / normalize_user_id(user_id)


def verify_request_identity(request: Request) -> None:
    """Check the identity headers the app config asks for.

    A valid user id is stored on ``request.state`` for the handlers.
    """
    config = _app_config(request)
    if getattr(config, "require_user_header", True):
        raw_user_id = request.headers.get(USER_ID_HEADER)
        if raw_user_id is None:
            raise _identity_required()
        request.state.user_id = normalize_user_id(raw_user_id)

    service_token = getattr(config, "service_token", None)
    if service_token and request.headers.get(SERVICE_TOKEN_HEADER) != service_token:
        raise McpError(
            "AUTH_FORBIDDEN",
            "Invalid service token.",
            {"header": SERVICE_TOKEN_HEADER},
        )


def get_request_user_id(request: Request) -> str:
    """Return the caller's normalized id, preferring the one the middleware cached."""
    user_id = getattr(request.state, "user_id", None)
    if not (isinstance(user_id, str) and user_id.strip()):
        user_id = request.headers.get(USER_ID_HEADER)
        if user_id is None:
            raise _identity_required()
    request.state.user_id = normalize_user_id(user_id)
    return request.state.user_id


def get_request_library_root(request: Request) -> Path:
    """Return the caller's library root, creating it on first use."""
    config = _app_config(request)
    library_path = getattr(config, "library_path", None)
    if library_path is None:
        library_path = request.app.state.library_path

    user_id = get_request_user_id(request)
    user_root = resolve_user_library_root(Path(library_path), user_id)
    user_root.mkdir(parents=True, exist_ok=True)
    return user_root


def get_request_limits(request: Request) -> MergeLimits:
    limits = getattr(_app_config(request), "limits", None)
    return limits if isinstance(limits, MergeLimits) else MergeLimits()


def get_request_lock_timeout(request: Request) -> float:
    return float(getattr(_app_config(request), "lock_timeout", DEFAULT_LOCK_TIMEOUT))
