"""
Security helpers for password hashing, session tokens and access control.

Session tokens are JSON Web Tokens signed with HMAC‑SHA256 and
base64url encoded.  A token carries the user id in ``sub`` and an
expiration timestamp in ``exp`` (seven days by default).  Tokens are
stateless: nothing is stored server side and logout is a client
concern, so a token stays valid until it expires.

Passwords are hashed with PBKDF2‑HMAC‑SHA256 and a random 16‑byte salt.

The FastAPI dependencies at the bottom of the module form the access
control guard: ``get_current_user`` (mandatory authentication),
``optional_user`` (never fails) and ``require_roles``/``require_admin``
(role gate).
"""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Callable, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .errors import Forbidden, InvalidToken, Unauthenticated

PBKDF2_ITERATIONS = 100_000


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(user_id: int, expires_delta: Optional[int] = None) -> str:
    """Issue a signed token bound to ``user_id``.

    Parameters
    ----------
    user_id : int
        Identifier of the user the token authenticates.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.

    Returns
    -------
    str
        A token of the form ``header.payload.signature``.
    """
    exp_seconds = expires_delta or settings.access_token_expire_minutes * 60
    payload = {"sub": str(user_id), "exp": int(time.time()) + exp_seconds}
    header = {"alg": settings.algorithm, "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, settings.secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str) -> Optional[Dict[str, object]]:
    """Verify a token's signature and expiry and return its payload.

    Returns ``None`` when the token is malformed, the signature does
    not match or the token has expired.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    try:
        actual_sig = _b64_url_decode(signature_b64)
        if not hmac.compare_digest(_sign(signing_input, settings.secret_key), actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        # binascii.Error and json.JSONDecodeError are both ValueErrors
        return None
    if not isinstance(data, dict):
        return None
    exp = data.get("exp")
    if not isinstance(exp, int) or exp < int(time.time()):
        return None
    return data


def verify_token(token: str) -> int:
    """Return the user id a token was issued for.

    Raises ``InvalidToken`` if the token is invalid or expired.
    """
    payload = decode_access_token(token)
    if payload is None:
        raise InvalidToken()
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        raise InvalidToken()
    return int(subject)


def hash_password(password: str) -> str:
    """Hash a password as ``"<salt hex>$<digest hex>"``."""
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plain password against a stored salt+hash string."""
    try:
        salt_hex, hash_hex = hashed_password.split("$", 1)
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)


# ---------------------------------------------------------------------------
# Access control guard
# ---------------------------------------------------------------------------

security = HTTPBearer(auto_error=False)


async def resolve_user(token: str):
    """Resolve a bearer token to an active user.

    Raises ``Unauthenticated`` when the token does not verify, the user
    no longer exists or the account has been deactivated.
    """
    from catalog_api.app.services.user_service import UserService

    user_id = verify_token(token)
    user = await UserService.find_user(user_id)
    if user is None:
        raise Unauthenticated("User no longer exists")
    if not user.is_active:
        raise Unauthenticated("Account is deactivated")
    return user


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
):
    """Dependency that requires an authenticated, active user.

    The resolved user (without password) is returned and also stored
    on ``request.state.user`` for downstream handlers.
    """
    if credentials is None:
        raise Unauthenticated("Access token required")
    user = await resolve_user(credentials.credentials)
    request.state.user = user
    return user


async def optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
):
    """Dependency that resolves the caller if possible and never fails."""
    request.state.user = None
    if credentials is None:
        return None
    try:
        user = await resolve_user(credentials.credentials)
    except Unauthenticated:
        return None
    request.state.user = user
    return user


def require_roles(*roles: str) -> Callable:
    """Dependency factory that admits only users holding one of ``roles``.

    Use in endpoints via ``Depends(require_roles("admin"))``.  Raises
    ``Forbidden`` for authenticated users with any other role.
    """

    async def _role_dependency(current_user=Depends(get_current_user)):
        if current_user.role not in roles:
            raise Forbidden("Admin access required")
        return current_user

    return _role_dependency


require_admin = require_roles("admin")
