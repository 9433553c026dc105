from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from envelope import no_data, ok
from schemas import CustomerSessionIn
from security import (
    CUSTOMER_COOKIE,
    SessionResult,
    clear_customer_cookie,
    issue_customer_token,
    optional_customer_session,
    set_customer_cookie,
)

router = APIRouter(prefix="/api/customer", tags=["customer"])


@router.post("/session")
async def create_session(payload: CustomerSessionIn, response: Response):
    token = issue_customer_token(payload.customer_name)
    set_customer_cookie(response, token)
    return ok({"customer_name": payload.customer_name, "token": token})


@router.get("/session")
async def get_session(request: Request, response: Response, session: SessionResult = Depends(optional_customer_session)):
    if not session.valid:
        if CUSTOMER_COOKIE in request.cookies:
            clear_customer_cookie(response)
        return no_data()
    return ok({"customer_name": session.customer_name})


@router.delete("/session")
async def clear_session(response: Response):
    clear_customer_cookie(response)
    return ok(message="Customer session cleared")
