"""
Token handling and request guards.

Two independent identities travel on requests:

- staff: a JWT ``{sub, role, exp}`` in the ``Authorization: Bearer`` header
  or the httpOnly ``token`` cookie. Routes declare the ``Permission`` they
  need; roles map to permission sets in ``ROLE_PERMISSIONS``.
- customer: a name-only JWT ``{customer_name, exp}`` in the httpOnly
  ``customer_session`` cookie. Verification returns a ``SessionResult``
  and never raises, so optional-session paths degrade to anonymous.

Neither token is stored server side. A leaked token stays valid until it
expires; logging out only clears the cookie.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

import jwt
from fastapi import Depends, Request, Response

import accounts
from database import Store, get_store
from errors import AuthError, PermissionDeniedError
from schemas import Role
from settings import settings

logger = logging.getLogger(__name__)

AUTH_COOKIE = "token"
CUSTOMER_COOKIE = "customer_session"


class Permission(str, Enum):
    VIEW_ORDERS = "view_orders"
    UPDATE_ORDER_STATUS = "update_order_status"
    MANAGE_PRODUCTS = "manage_products"
    VIEW_ANALYTICS = "view_analytics"
    MANAGE_USERS = "manage_users"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.admin: frozenset(Permission),
    Role.staff: frozenset({Permission.VIEW_ORDERS, Permission.UPDATE_ORDER_STATUS}),
}


def has_permission(role: str, permission: Permission) -> bool:
    try:
        return permission in ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return False


def _encode(claims: dict[str, Any], expires_in: timedelta) -> str:
    payload = {**claims, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _decode(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


# Staff tokens

def issue_access_token(user: dict[str, Any], expires_in: Optional[timedelta] = None) -> str:
    return _encode(
        {"sub": user["id"], "role": user["role"]},
        expires_in or timedelta(days=settings.JWT_EXPIRES_DAYS),
    )


def _bearer_or_cookie(request: Request) -> Optional[str]:
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


async def get_current_user(request: Request, store: Store = Depends(get_store)) -> dict[str, Any]:
    token = _bearer_or_cookie(request)
    if not token:
        raise AuthError("Not authenticated. Please login.")
    try:
        claims = _decode(token)
    except jwt.PyJWTError as e:
        logger.info("Rejected staff token: %s", e)
        raise AuthError("Not authenticated. Please login.")
    user = await accounts.get_user_by_id(store, str(claims.get("sub", "")))
    if not user:
        raise AuthError("User not found")
    return user


def require_permission(permission: Permission):
    async def dependency(user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
        if not has_permission(user.get("role", ""), permission):
            logger.warning("User %s lacks %s", user.get("email"), permission.value)
            raise PermissionDeniedError("You do not have permission to perform this action")
        return user
    return dependency


# Customer sessions

@dataclass(frozen=True)
class SessionResult:
    valid: bool
    customer_name: Optional[str] = None


def issue_customer_token(customer_name: str, expires_in: Optional[timedelta] = None) -> str:
    return _encode(
        {"customer_name": customer_name},
        expires_in or timedelta(days=settings.CUSTOMER_SESSION_DAYS),
    )


def verify_customer_token(token: Optional[str]) -> SessionResult:
    if not token:
        return SessionResult(valid=False)
    try:
        claims = _decode(token)
    except jwt.PyJWTError:
        return SessionResult(valid=False)
    name = claims.get("customer_name")
    if not isinstance(name, str) or not name:
        return SessionResult(valid=False)
    return SessionResult(valid=True, customer_name=name)


def optional_customer_session(request: Request) -> SessionResult:
    return verify_customer_token(request.cookies.get(CUSTOMER_COOKIE))


def require_customer_session(request: Request) -> str:
    token = request.cookies.get(CUSTOMER_COOKIE)
    if not token:
        raise AuthError("Customer session required. Please enter your name.")
    session = verify_customer_token(token)
    if not session.valid:
        raise AuthError("Invalid customer session. Please enter your name again.")
    return session.customer_name


# Cookies

def _set_cookie(response: Response, key: str, value: str, max_age: timedelta) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def _clear_cookie(response: Response, key: str) -> None:
    response.delete_cookie(key=key, path="/", httponly=True, secure=settings.is_production, samesite="lax")


def set_auth_cookie(response: Response, token: str) -> None:
    _set_cookie(response, AUTH_COOKIE, token, timedelta(days=settings.JWT_EXPIRES_DAYS))


def clear_auth_cookie(response: Response) -> None:
    _clear_cookie(response, AUTH_COOKIE)


def set_customer_cookie(response: Response, token: str) -> None:
    _set_cookie(response, CUSTOMER_COOKIE, token, timedelta(days=settings.CUSTOMER_SESSION_DAYS))


def clear_customer_cookie(response: Response) -> None:
    _clear_cookie(response, CUSTOMER_COOKIE)
