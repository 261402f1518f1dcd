"""Session identifiers carried in the ``session_id`` cookie."""
import logging
import secrets
from typing import Optional, Tuple

from starlette.responses import Response

from config import SESSION_COOKIE_NAME, SESSION_TTL_SECONDS, SESSION_COOKIE_SECURE

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    """Opaque session token: 16 random bytes, hex encoded."""
    return secrets.token_hex(16)


def resolve_session_id(cookie_value: Optional[str]) -> Tuple[str, bool]:
    """
    Reuse the cookie's session id or mint a new one.

    Returns:
        (session_id, is_new)
    """
    if cookie_value:
        logger.debug(f"Existing session ID: {cookie_value}")
        return cookie_value, False

    session_id = generate_session_id()
    logger.info(f"Generated new session ID: {session_id}")
    return session_id, True


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        max_age=SESSION_TTL_SECONDS,
        path="/",
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
    )


def session_cookie_header(session_id: str) -> Tuple[bytes, bytes]:
    """``Set-Cookie`` header for responses that are not a Response object (WebSocket accept)."""
    carrier = Response()
    set_session_cookie(carrier, session_id)
    return next(
        (name, value) for name, value in carrier.raw_headers if name == b"set-cookie"
    )
