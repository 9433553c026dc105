"""
Staff accounts: bcrypt password hashing, credential checks and the first
admin bootstrap.

Emails are stored lower-cased and are unique (see ``Store.ensure_indexes``).
The password hash never leaves this module; callers get ``public_user``
dicts.
"""
from __future__ import annotations
import logging
from typing import Any, Optional

import bcrypt
from pymongo.errors import DuplicateKeyError

from database import Store, create_document, parse_object_id, to_client
from errors import AuthError, ValidationError
from schemas import Role
from settings import settings

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def public_user(doc: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    user = to_client(doc)
    if user is not None:
        user.pop("password_hash", None)
    return user


async def get_user_by_id(store: Store, user_id: str) -> Optional[dict[str, Any]]:
    oid = parse_object_id(user_id)
    if oid is None:
        return None
    return public_user(await store.users.find_one({"_id": oid}))


async def create_user(store: Store, name: str, email: str, password: str, role: Role = Role.staff) -> dict[str, Any]:
    email = email.strip().lower()
    if await store.users.find_one({"email": email}):
        raise ValidationError("User with this email already exists")
    try:
        user = await create_document(store.users, {
            "name": name,
            "email": email,
            "password_hash": hash_password(password),
            "role": Role(role).value,
        })
    except DuplicateKeyError:
        raise ValidationError("User with this email already exists")
    user.pop("password_hash", None)
    logger.info("Created %s account %s", user["role"], email)
    return user


async def authenticate(store: Store, email: str, password: str) -> dict[str, Any]:
    """Return the public user for valid credentials, else raise AuthError.

    Unknown email and wrong password produce the same message.
    """
    doc = await store.users.find_one({"email": email.strip().lower()})
    if not doc or not verify_password(password, doc.get("password_hash", "")):
        logger.warning("Failed login for %s", email)
        raise AuthError("Invalid credentials")
    return public_user(doc)


async def ensure_admin(store: Store, name: str, email: str, password: str) -> tuple[dict[str, Any], bool]:
    """Create the first admin if none exists. Returns (admin, created)."""
    existing = await store.users.find_one({"role": Role.admin.value})
    if existing:
        logger.info("Admin user already exists")
        return public_user(existing), False
    admin = await create_user(store, name, email, password, Role.admin)
    return admin, True
