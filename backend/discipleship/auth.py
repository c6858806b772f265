"""Authentication helpers and FastAPI security dependencies.

This module decodes JWT bearer tokens and provides `get_current_user`,
which resolves the token to an active `User`. That user's `church_id`
is the tenant scope for every downstream service call. Permission
dependencies wrap the pure predicates in `permissions.py`.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from typing import Callable

import jwt
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .config import Settings
from .database import get_session
from .errors import PermissionDeniedError
from .permissions import has_any_permission, is_leader

bearer_scheme = HTTPBearer()


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The function extracts the bearer token from the request, decodes it
    and performs a database lookup to return the `User` object. It raises
    an HTTPException(401) for any authentication issue, including a
    deactivated account.
    """
    payload = decode_token(credentials.credentials, request.app.state.settings)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    if not user.is_active:
        raise HTTPException(status_code=401, detail='account disabled')
    request.state.church_id = user.church_id
    return user


def require_permission(*permissions: str) -> Callable:
    """Dependency factory: the current user must hold any of `permissions`."""
    def dependency(user: models.User = Depends(get_current_user)) -> models.User:
        if not has_any_permission(user.role, permissions):
            raise PermissionDeniedError(
                f"missing permission: {' or '.join(permissions)}", code='FORBIDDEN'
            )
        return user
    return dependency


def require_leader(user: models.User = Depends(get_current_user)) -> models.User:
    """The current user must be a teacher or above."""
    if not is_leader(user.role):
        raise PermissionDeniedError('teacher role or above required', code='FORBIDDEN')
    return user
