"""
JWT Auth Middleware — Parses the bearer token and sets ``g.actor``.

  - Token present and valid     → g.actor built from its claims
  - No token, auth disabled     → g.actor is the "system" actor
  - No/invalid token, auth on   → 401 error envelope on protected paths

API_AUTH_ENABLED is a string flag ("true"/"false") like the other
environment-driven switches.
"""

import logging

import jwt as pyjwt
from flask import g, request

from coreapi.core.actor import Actor
from coreapi.core.exceptions import Unauthorized
from coreapi.services.jwt_service import decode_token
from coreapi.utils.errors import api_error

logger = logging.getLogger(__name__)


def _auth_enabled(app) -> bool:
    return str(app.config.get("API_AUTH_ENABLED", "true")).lower() in ("1", "true", "yes")


def _is_public(app, path: str) -> bool:
    if not path.startswith("/api/v1/"):
        return True
    if path in app.config.get("JWT_PUBLIC_PATHS", ("/api/v1/",)):
        return True
    return any(path.startswith(prefix) for prefix in app.config.get("JWT_SKIP_PREFIXES", ()))


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""
    superadmin_role = app.config.get("SUPERADMIN_ROLE", "superadmin")

    @app.before_request
    def _jwt_auth():
        g.actor = Actor(superadmin_role=superadmin_role)
        g.jwt_claims = None

        path = request.path
        public = _is_public(app, path)
        enforce = _auth_enabled(app) and not public

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            if enforce:
                return api_error(Unauthorized())
            return None

        token = auth_header[7:]  # Strip "Bearer "
        try:
            claims = decode_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired bearer token on %s", path)
            if enforce:
                return api_error(Unauthorized())
            return None
        except pyjwt.InvalidTokenError as exc:
            logger.info("Invalid bearer token on %s: %s", path, exc)
            if enforce:
                return api_error(Unauthorized())
            return None

        g.jwt_claims = claims
        g.actor = Actor.from_claims(claims, superadmin_role=superadmin_role)
        return None
