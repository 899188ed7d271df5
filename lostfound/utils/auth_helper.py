import base64
import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as grequests
from google.oauth2 import id_token
from jose.utils import base64url_decode
from pydantic import BaseModel, ConfigDict

from lostfound.models.item import Item
from lostfound.utils.errors import InvalidCredential, Unauthenticated, Unavailable

logger = logging.getLogger(__name__)

DEMO_TOKEN_PREFIX = "demo_"
AUTH_COOKIE_NAME = "auth_token"
AUTH_COOKIE_MAX_AGE = 60 * 60 * 24 * 7  # 1 week

# Payload fields carrying the user id, in lookup order
USER_ID_FIELDS = ("user_id", "sub")


class CallerIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: Optional[str] = None


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def demo_login_enabled() -> bool:
    return env_flag("DEMO_LOGIN_ENABLED", True)


def issue_demo_token(username: str) -> str:
    ts = int(datetime.now(timezone.utc).timestamp() * 1000)
    raw = base64.urlsafe_b64encode(f"{username}:{ts}".encode()).decode().rstrip("=")
    return f"{DEMO_TOKEN_PREFIX}{raw}"


def identity_from_claims(claims: dict) -> CallerIdentity:
    user_id = None
    for field in USER_ID_FIELDS:
        value = claims.get(field)
        if isinstance(value, str) and value:
            user_id = value
            break

    if not user_id:
        raise InvalidCredential("Token does not carry a user id")

    email = claims.get("email")
    return CallerIdentity(user_id=user_id, email=email if isinstance(email, str) and email else None)


def decode_unverified(token: str) -> CallerIdentity:
    """
    Read the identity out of a compact token's payload segment.
    The signature is NOT checked here; see AUTH_VERIFY_TOKENS.
    """
    if token.count(".") != 2:
        raise InvalidCredential("Malformed token")

    # only the payload segment is read, the header is ignored
    payload = token.split(".")[1]

    try:
        claims = json.loads(base64url_decode(payload.encode()))
    except (ValueError, TypeError):
        raise InvalidCredential("Malformed token")

    if not isinstance(claims, dict):
        raise InvalidCredential("Malformed token")

    return identity_from_claims(claims)


def verify_firebase(token: str) -> CallerIdentity:
    project_id = os.getenv("FIREBASE_PROJECT_ID")
    if not project_id:
        raise Unavailable("Token verification is enabled but FIREBASE_PROJECT_ID is not set")

    try:
        claims = id_token.verify_firebase_token(token, grequests.Request(), audience=project_id)
    except google_exceptions.TransportError:
        logger.exception("Could not fetch token signing certificates")
        raise Unavailable("Could not verify token, please retry")
    except (ValueError, google_exceptions.GoogleAuthError):
        raise InvalidCredential()

    return identity_from_claims(claims or {})


def resolve_identity(credential: Optional[str]) -> CallerIdentity:
    if not credential:
        raise Unauthenticated()

    if credential.startswith(DEMO_TOKEN_PREFIX):
        if not demo_login_enabled():
            raise InvalidCredential("Demo login is disabled")
        return CallerIdentity(user_id=credential)

    if env_flag("AUTH_VERIFY_TOKENS", False):
        return verify_firebase(credential)

    return decode_unverified(credential)


bearer_scheme = HTTPBearer(auto_error=False)


def get_credential(
    token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_token: Optional[str] = Cookie(default=None),
) -> Optional[str]:
    # header wins over cookie
    if token:
        return token.credentials
    return auth_token


def get_current_user_required(credential: Optional[str] = Depends(get_credential)) -> CallerIdentity:
    return resolve_identity(credential)


def get_current_user_optional(credential: Optional[str] = Depends(get_credential)) -> Optional[CallerIdentity]:
    if not credential:
        return None

    try:
        return resolve_identity(credential)
    except Unauthenticated:
        return None


def is_item_reporter(item: Item, caller: CallerIdentity) -> bool:
    # Email fallback covers credentials whose user id differs from the one stored at creation
    if item.reported_by and item.reported_by == caller.user_id:
        return True

    return bool(item.reporter_email and caller.email and item.reporter_email == caller.email)
