from __future__ import annotations
import logging

from fastapi import APIRouter, Depends, Response

import accounts
from database import Store, get_store
from envelope import ok
from schemas import LoginIn, RegisterIn
from security import (
    Permission,
    clear_auth_cookie,
    get_current_user,
    issue_access_token,
    require_permission,
    set_auth_cookie,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201, dependencies=[Depends(require_permission(Permission.MANAGE_USERS))])
async def register(payload: RegisterIn, store: Store = Depends(get_store)):
    user = await accounts.create_user(store, payload.name, payload.email, payload.password, payload.role)
    return ok(user)


@router.post("/login")
async def login(payload: LoginIn, response: Response, store: Store = Depends(get_store)):
    user = await accounts.authenticate(store, payload.email, payload.password)
    token = issue_access_token(user)
    set_auth_cookie(response, token)
    logger.info("User %s logged in", user["email"])
    return ok({"user": user, "token": token})


@router.post("/logout")
async def logout(response: Response, user: dict = Depends(get_current_user)):
    clear_auth_cookie(response)
    return ok(message="Logged out successfully")


@router.get("/me")
async def me(user: dict = Depends(get_current_user)):
    return ok(user)
