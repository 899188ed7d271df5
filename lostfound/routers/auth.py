import logging
import os
import secrets
from typing import Optional
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from lostfound.utils.auth_helper import (
    AUTH_COOKIE_MAX_AGE,
    AUTH_COOKIE_NAME,
    CallerIdentity,
    demo_login_enabled,
    get_current_user_required,
    issue_demo_token,
)
from lostfound.utils.errors import Unauthenticated, Unavailable

logger = logging.getLogger(__name__)

router = APIRouter()


class DemoLoginRequest(BaseModel):
    email: str
    password: str


class DemoLoginResponse(BaseModel):
    token: str
    email: str
    is_demo: bool = True


class IdentityResponse(BaseModel):
    user_id: str
    email: Optional[str] = None


@router.post("/demo", response_model=DemoLoginResponse)
def demo_login(payload: DemoLoginRequest, response: Response):
    demo_user = os.getenv("DEMO_USER")
    demo_password = os.getenv("DEMO_PASSWORD")

    if not demo_login_enabled() or not demo_user or not demo_password:
        raise Unavailable("Demo login is not configured")

    valid_user = secrets.compare_digest(payload.email.encode(), demo_user.encode())
    valid_password = secrets.compare_digest(payload.password.encode(), demo_password.encode())

    if not (valid_user and valid_password):
        logger.warning("Rejected demo login for %s", payload.email)
        raise Unauthenticated("Invalid demo credentials")

    token = issue_demo_token(demo_user)

    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=AUTH_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
    )

    return DemoLoginResponse(token=token, email=demo_user)


@router.post("/verify", response_model=IdentityResponse)
def verify(current_user: CallerIdentity = Depends(get_current_user_required)):
    return IdentityResponse(user_id=current_user.user_id, email=current_user.email)


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE_NAME, path="/")
    return {"ok": True}
