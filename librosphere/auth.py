"""
Basic authentication for LibroSphere
"""

import base64
import binascii
import hmac
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

BASIC_PREFIX = "Basic "


def create_basic_auth_header(username: str, password: str) -> str:
    """Create Basic Auth header value"""
    credentials = f"{username}:{password}"
    encoded = base64.b64encode(credentials.encode('utf-8')).decode('ascii')
    return f"{BASIC_PREFIX}{encoded}"


def is_authorized(authorization: Optional[str], username: str, password: str) -> bool:
    """
    Check an Authorization header against the configured credential

    Both the presented and the expected header are zero-padded to the
    longer of the two before a constant-time comparison, so the time
    taken does not depend on either length.
    """
    if not authorization or not authorization.startswith(BASIC_PREFIX):
        return False

    try:
        expected = create_basic_auth_header(username, password).encode('utf-8')
        presented = authorization.encode('utf-8')

        max_len = max(len(expected), len(presented))
        safe_presented = presented.ljust(max_len, b"\x00")
        safe_expected = expected.ljust(max_len, b"\x00")

        return hmac.compare_digest(safe_presented, safe_expected)
    except Exception as e:
        logger.warning(f"Authorization comparison failed: {type(e).__name__}")
        return False


def parse_basic_auth(authorization: str) -> Optional[Tuple[str, str]]:
    """Split a Basic header into (username, password); None if malformed"""
    if not authorization.startswith(BASIC_PREFIX):
        return None

    try:
        decoded = base64.b64decode(authorization[len(BASIC_PREFIX):], validate=True).decode('utf-8')
    except (binascii.Error, ValueError):
        return None

    username, sep, password = decoded.partition(':')
    if not sep:
        return None
    return username, password


def get_user_from_request(request) -> Optional[str]:
    """Name the user for access logs; never used to authorize"""
    credentials = parse_basic_auth(request.headers.get("Authorization", ""))
    return credentials[0] if credentials else None
