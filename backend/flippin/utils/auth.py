from __future__ import annotations

from flask import g, request

from flippin.errors import ForbiddenError, FlippinError
from flippin.models import User
from flippin.utils.jwt_utils import decode_token, get_bearer_token


class AuthenticationRequired(FlippinError):
    code = "UNAUTHORIZED"
    status = 401


def current_user() -> User | None:
    token = get_bearer_token(request.headers.get("Authorization", ""))
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    sub = str(payload.get("sub") or "").strip()
    if not sub:
        return None
    user = User.query.filter_by(auth_subject=sub).first()
    if user is not None:
        g.auth_user_id = int(user.id)
    return user


def require_user() -> User:
    user = current_user()
    if user is None:
        raise AuthenticationRequired("Authentication required")
    return user


def require_admin() -> User:
    user = require_user()
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user
