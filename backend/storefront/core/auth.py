# storefront/core/auth.py
"""
Bearer-token authentication for the cart endpoints.

`Authorization: Bearer <Firebase ID token>` is verified with the Firebase Admin SDK
(revocation checked). The token's uid is the only ownership key the cart trusts.
"""
import logging
from typing import Optional

from fastapi import Request, HTTPException, status
from firebase_admin import auth as fb_auth

from storefront.config import settings, init_firebase
from storefront.schemas.principal import Principal

logger = logging.getLogger("storefront.auth")

MOCK_TOKEN_PREFIX = "mock_jwt_token_"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Returns the token from `Authorization: Bearer <id_token>`, or None.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def _decode_mock_token(mock_token: str) -> dict:
    """
    Format: mock_jwt_token_<uid>, e.g. mock_jwt_token_anonymous_1234567890
    """
    uid = mock_token[len(MOCK_TOKEN_PREFIX):]
    if not uid:
        raise _unauthorized("Invalid mock token format")
    return {
        "uid": uid,
        "email": None,
        "name": None,
        "firebase": {
            "sign_in_provider": "anonymous" if "anonymous" in uid else "password"
        },
        "admin": False,
    }


def _decode_id_token(id_token: str) -> dict:
    if id_token.startswith(MOCK_TOKEN_PREFIX) and settings.allow_mock_tokens:
        return _decode_mock_token(id_token)

    init_firebase()
    try:
        return fb_auth.verify_id_token(id_token, check_revoked=True)
    except fb_auth.ExpiredIdTokenError:
        raise _unauthorized("Token expired")
    except fb_auth.RevokedIdTokenError:
        raise _unauthorized("Session revoked")
    except fb_auth.UserDisabledError:
        raise _unauthorized("User disabled")
    except (fb_auth.InvalidIdTokenError, ValueError) as exc:
        logger.info("Rejected ID token: %s", exc)
        raise _unauthorized("Invalid authentication token")


def _token_to_principal(decoded: dict) -> Principal:
    """
    - anonymous provider -> role='guest'
    - custom claim admin=True -> role='admin'
    - otherwise -> role='user'
    """
    uid = decoded.get("uid") or decoded.get("user_id")
    if not uid:
        raise _unauthorized("Token missing uid")

    provider = (decoded.get("firebase") or {}).get("sign_in_provider")
    if provider == "anonymous":
        role = "guest"
    elif decoded.get("admin") is True:
        role = "admin"
    else:
        role = "user"

    return Principal(
        uid=uid,
        role=role,
        email=decoded.get("email"),
        display_name=decoded.get("name"),
    )


# --------- FastAPI Dependencies --------- #

def get_principal(request: Request) -> Principal:
    """Token required: verifies it and returns the Principal (guest/user/admin)."""
    token = _extract_bearer_token(request)
    if not token:
        raise _unauthorized("Missing Authorization header")
    return _token_to_principal(_decode_id_token(token))
