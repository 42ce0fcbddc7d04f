"""
JWT Service — bearer token verification.

Tokens are issued by an external identity provider; this service only
verifies them.

Expected payload:
{
    "sub": <user id or name>,
    "username": <display name used as change-log actor>,   # optional
    "roles": ["superadmin", ...],
    "exp": <expires_at>
}
"""

import jwt
from flask import current_app


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def decode_token(token: str) -> dict:
    """
    Decode and verify a bearer token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    options = {}
    kwargs = {}
    audience = current_app.config.get("JWT_AUDIENCE")
    issuer = current_app.config.get("JWT_ISSUER")
    if audience:
        kwargs["audience"] = audience
    else:
        options["verify_aud"] = False
    if issuer:
        kwargs["issuer"] = issuer

    return jwt.decode(
        token,
        _get_secret(),
        algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        options=options,
        **kwargs,
    )
