"""
Utility functions for LibroSphere
"""

import re
import time
import logging
from typing import Callable, Dict, Optional

from .models import MIME_TYPES, DEFAULT_MIME_TYPE

logger = logging.getLogger(__name__)

# Reserved characters and ASCII control characters
FORBIDDEN_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')

TRAVERSAL_SEQUENCES = ("..", "./", "/.")

# Headers checked in order for the client identifier
CLIENT_IP_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP")

UNKNOWN_CLIENT = "unknown"

# Uploads shorter than this are not inspected
MIN_SIGNATURE_LENGTH = 8

PDF_SIGNATURE = b"%PDF"


def sanitize_path(path: str) -> Optional[str]:
    """
    Normalize a user supplied path into an object key

    Leading and trailing slashes are stripped. Any traversal sequence,
    reserved character or control character rejects the path.

    Args:
        path: Raw, already percent-decoded path

    Returns:
        The object key, or None if the path is unsafe
    """
    path = path.strip("/")

    if any(seq in path for seq in TRAVERSAL_SEQUENCES):
        return None

    if FORBIDDEN_CHARS.search(path):
        return None

    return path


def get_extension(key: str) -> str:
    """Get the lower-case extension of a key, without the dot"""
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def get_mime_type(extension: str) -> str:
    """Get MIME type for an extension"""
    return MIME_TYPES.get(extension.lower(), DEFAULT_MIME_TYPE)


def _has_pdf_signature(data: bytes) -> bool:
    return data[:4] == PDF_SIGNATURE


# Extensions without an entry are trusted as-is
SIGNATURE_VALIDATORS: Dict[str, Callable[[bytes], bool]] = {
    'pdf': _has_pdf_signature,
}


def validate_file_content(extension: str, data: bytes) -> bool:
    """Check the leading bytes of an upload against its extension"""
    if len(data) < MIN_SIGNATURE_LENGTH:
        return True

    validator = SIGNATURE_VALIDATORS.get(extension.lower())
    if validator is None:
        return True

    return validator(data)


def format_http_date(timestamp: float) -> str:
    """Format a timestamp as an RFC 7231 HTTP-date"""
    return time.strftime("%a, %d %b %Y %H:%M:%S GMT", time.gmtime(timestamp))


def get_client_ip(request) -> str:
    """Extract the client identifier from forwarding headers"""
    for header in CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            # X-Forwarded-For lists the original client first
            return value.split(",")[0].strip()

    return UNKNOWN_CLIENT

