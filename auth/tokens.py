"""
auth/tokens.py -- Admin key verification and CSRF tokens for the export action.

Security design decisions:
  Admin key: compared with hmac.compare_digest so response time does not leak
       how many leading characters of a guess were correct.

  CSRF tokens: "<expires>.<hex hmac>" where the HMAC-SHA256 is keyed by
       SECRET_KEY over "<action>:<expires>". Tokens are bound to one action so a
       token minted for one form cannot be replayed against another, and they
       expire after Settings.csrf_token_ttl_seconds. Verification returns False
       on any failure -- the route layer turns that into a 403.

  SECRET_KEY: sourced from core.config.get_settings(), which enforces length
       and production presence.

Layer rule: no imports from api/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from core.config import get_settings

logger = logging.getLogger("capdrift.auth")

EXPORT_ACTION = "capdrift_export_json"


def verify_admin_key(raw_key: str) -> bool:
    """Return True if raw_key matches ADMIN_API_KEY. An unset key matches nothing."""
    expected = get_settings().admin_api_key
    if not expected or not raw_key:
        return False
    return hmac.compare_digest(raw_key.encode("utf-8"), expected.encode("utf-8"))


def _sign(action: str, expires: int) -> str:
    return hmac.new(
        get_settings().secret_key.encode(),
        f"{action}:{expires}".encode(),
        hashlib.sha256,
    ).hexdigest()


def create_csrf_token(action: str = EXPORT_ACTION, now: float | None = None) -> str:
    """Mint a token for `action`, valid for csrf_token_ttl_seconds from `now`."""
    issued = int(now if now is not None else time.time())
    expires = issued + get_settings().csrf_token_ttl_seconds
    return f"{expires}.{_sign(action, expires)}"


def verify_csrf_token(token: str, action: str = EXPORT_ACTION, now: float | None = None) -> bool:
    """Return True if token was minted for `action` and has not expired."""
    expires_part, sep, signature = (token or "").partition(".")
    if not sep:
        return False
    try:
        expires = int(expires_part)
    except ValueError:
        return False
    current = now if now is not None else time.time()
    if current > expires:
        logger.info("Rejected expired CSRF token for %s", action)
        return False
    return hmac.compare_digest(signature, _sign(action, expires))
