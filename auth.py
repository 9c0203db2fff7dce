"""Caller identity, as handed to us by the upstream identity provider.

The provider authenticates the user and forwards the result in request
headers; this module only reads them. Admin routes use a shared key in
``X-Admin-Key`` instead.
"""

import secrets
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import current_app, g, request

from errors import AuthenticationError, AuthorizationError


@dataclass(frozen=True)
class Identity:
    user_id: str
    name: str = ""
    email: Optional[str] = None

    def display_name(self) -> str:
        return self.name or f"User {self.user_id[:5]}"


def load_identity() -> None:
    """``before_request`` hook: populate ``g.identity`` (or None)."""
    cfg = current_app.config
    user_id = (request.headers.get(cfg["IDENTITY_USER_HEADER"]) or "").strip()
    if not user_id or len(user_id) > 64:
        g.identity = None
        return
    g.identity = Identity(
        user_id=user_id,
        name=(request.headers.get(cfg["IDENTITY_NAME_HEADER"]) or "").strip(),
        email=(request.headers.get(cfg["IDENTITY_EMAIL_HEADER"]) or "").strip() or None,
    )


def current_identity() -> Optional[Identity]:
    return g.get("identity")


def identity_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_identity() is None:
            raise AuthenticationError()
        return view(*args, **kwargs)

    return wrapper


def _admin_ok(req) -> bool:
    # Header only; never accept the key from query params.
    key = req.headers.get("X-Admin-Key", "")
    expected = current_app.config.get("ADMIN_API_KEY", "")
    return bool(expected) and secrets.compare_digest(key, expected)


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if not _admin_ok(request):
            raise AuthorizationError()
        return view(*args, **kwargs)

    return wrapper
