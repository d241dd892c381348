"""
Supabase Authentication Middleware for Flask

Verifies access tokens issued by the hosted auth provider. Projects with a
shared JWT secret are verified with HS256; otherwise the provider's JSON Web
Key Set is fetched and used for asymmetric verification.
"""

import logging
import os
from functools import wraps
from typing import Any

import requests
from flask import current_app, g, jsonify, request
from jose import jwt
from jose.exceptions import JWTError

logger = logging.getLogger(__name__)

SUPABASE_URL = os.getenv('SUPABASE_URL', '').rstrip('/')
SUPABASE_JWT_SECRET = os.getenv('SUPABASE_JWT_SECRET')
SUPABASE_AUDIENCE = 'authenticated'

# Cache for JWKS
_jwks_cache: dict[str, Any] | None = None


def get_jwks() -> dict[str, Any]:
    """
    Fetch the auth provider's JSON Web Key Set (JWKS).

    Returns:
        JWKS dictionary
    """
    global _jwks_cache

    if _jwks_cache is not None:
        return _jwks_cache

    jwks_url = f'{SUPABASE_URL}/auth/v1/.well-known/jwks.json'
    try:
        response = requests.get(jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        return _jwks_cache
    except requests.RequestException as e:
        logger.error("Error fetching JWKS: %s", e)
        raise


def _signing_key(token: str) -> tuple[Any, list[str]] | None:
    if SUPABASE_JWT_SECRET:
        return SUPABASE_JWT_SECRET, ['HS256']

    kid = jwt.get_unverified_header(token).get('kid')
    if not kid:
        return None

    for jwk_key in get_jwks().get('keys', []):
        if jwk_key.get('kid') == kid:
            return jwk_key, [jwk_key.get('alg', 'RS256')]

    logger.warning("Key %s not found in JWKS", kid)
    return None


def verify_token(token: str) -> dict[str, Any] | None:
    """
    Verify an access token.

    Args:
        token: The JWT token string

    Returns:
        Decoded token payload if valid, None otherwise
    """
    try:
        signing = _signing_key(token)
        if signing is None:
            return None
        key, algorithms = signing

        return jwt.decode(
            token,
            key,
            algorithms=algorithms,
            audience=SUPABASE_AUDIENCE,
        )

    except JWTError as e:
        logger.info("JWT verification failed: %s", e)
        return None
    except requests.RequestException:
        return None


def get_auth_token() -> str | None:
    """
    Extract bearer token from Authorization header.

    Returns:
        Token string if present, None otherwise
    """
    auth_header = request.headers.get('Authorization', '')

    if not auth_header.startswith('Bearer '):
        return None

    return auth_header[7:]  # Remove 'Bearer ' prefix


def _test_user_id() -> str | None:
    # TESTING seam: deterministic auth without external keys/network.
    if current_app.config.get("TESTING") is True:
        return request.headers.get("X-Test-User-Id") or None
    return None


def require_auth(f):
    """
    Decorator to require authentication for a Flask route.

    Usage:
        @bp.get('/protected')
        @require_auth
        def protected_route():
            return {'user': g.user_id}
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        test_user_id = _test_user_id()
        if test_user_id:
            g.user = {"sub": test_user_id}
            g.user_id = test_user_id
            return f(*args, **kwargs)

        token = get_auth_token()

        if not token:
            return jsonify({'error': 'Missing authentication token'}), 401

        payload = verify_token(token)

        if not payload:
            return jsonify({'error': 'Invalid authentication token'}), 401

        g.user = payload
        g.user_id = payload.get('sub')

        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Decorator that allows but doesn't require authentication.

    ``g.user_id`` is the caller's id when a valid token is present, else None.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user = None
        g.user_id = _test_user_id()

        token = get_auth_token()
        if not g.user_id and token:
            payload = verify_token(token)
            if payload:
                g.user = payload
                g.user_id = payload.get('sub')

        return f(*args, **kwargs)

    return decorated_function
