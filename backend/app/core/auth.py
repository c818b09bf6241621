import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from app.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """Owner context: every stored expense belongs to exactly one ``id``."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None


def _decode_options(settings):
    """Build shared audience kwargs + options dict."""
    audience = (settings.jwt_audience or "").strip()
    decode_kwargs = {}
    options = {"require": ["sub", "exp"]}
    if audience:
        decode_kwargs["audience"] = audience
        options["verify_aud"] = True
    else:
        options["verify_aud"] = False
    return decode_kwargs, options


def decode_token(token: str) -> dict:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(500, "JWT_SECRET is not configured")

    decode_kwargs, options = _decode_options(settings)
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            options=options,
            **decode_kwargs,
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(401, "Token expired")
    except jwt.InvalidTokenError as exc:
        logger.debug("Token rejected: %s", exc)
        raise HTTPException(401, "Invalid token")


def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> CurrentUser:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(401, "Missing bearer token")

    token = authorization.split(" ", 1)[1].strip()
    payload = decode_token(token)

    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise HTTPException(401, "Invalid token")

    return CurrentUser(id=user_id, email=payload.get("email"), name=payload.get("name"))
