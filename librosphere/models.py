"""
Data models and constants for LibroSphere
"""

from enum import Enum
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field


class UploadStatus(Enum):
    """Outcome of a single file in a multi-file upload"""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ObjectInfo:
    """Listing entry for a stored object"""
    key: str
    size: int
    uploaded: float
    content_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "uploaded": self.uploaded,
            "content_type": self.content_type
        }


@dataclass
class StoredObject:
    """An object body together with its metadata"""
    key: str
    data: bytes
    content_type: str
    size: int
    uploaded: float

    def info(self) -> ObjectInfo:
        return ObjectInfo(
            key=self.key,
            size=self.size,
            uploaded=self.uploaded,
            content_type=self.content_type
        )


@dataclass
class UploadResult:
    """Per-file result of a multipart upload"""
    filename: str
    status: UploadStatus
    error: Optional[str] = None
    content_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "filename": self.filename,
            "status": self.status.value,
        }
        if self.error is not None:
            result["error"] = self.error
        if self.content_type is not None:
            result["contentType"] = self.content_type
        return result


@dataclass
class CachedResponse:
    """A rendered response kept by the response cache"""
    body: bytes
    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    expires: Optional[float] = None


@dataclass
class TlsConfig:
    """TLS configuration"""
    enabled: bool = False
    certfile: str = ""
    keyfile: str = ""


@dataclass
class ServerConfig:
    """Server configuration"""
    addr: str = "0.0.0.0"
    port: int = 8080
    tls: TlsConfig = field(default_factory=TlsConfig)


@dataclass
class AuthConfig:
    """Single-user Basic authentication"""
    username: str = ""
    password: str = ""
    realm: str = "LibroSphere"


@dataclass
class StorageConfig:
    """Object store backend selection"""
    backend: str = "filesystem"
    path: str = "data/objects"


@dataclass
class CacheConfig:
    """Listing response cache"""
    enabled: bool = True
    ttl: int = 604800
    clientMaxAge: int = 3600


@dataclass
class LoggingConfig:
    """Logging configuration"""
    json: bool = True
    file: str = ""
    level: str = "INFO"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass
class RateLimitConfig:
    """Rate limiting configuration"""
    enabled: bool = True
    maxRequestsPerMinute: int = 60
    cleanupThreshold: int = 1000


@dataclass
class UiConfig:
    """UI configuration"""
    brand: str = "LibroSphere"
    title: str = "LibroSphere"
    language: str = "en"
    assetDir: str = ""


@dataclass
class HotReloadConfig:
    """Hot reload configuration"""
    enabled: bool = False
    watchConfig: bool = True
    debounceMs: int = 1000


@dataclass
class Config:
    """Main configuration container"""
    server: ServerConfig = field(default_factory=ServerConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    rateLimit: RateLimitConfig = field(default_factory=RateLimitConfig)
    ui: UiConfig = field(default_factory=UiConfig)
    hotReload: HotReloadConfig = field(default_factory=HotReloadConfig)


# Supported book formats, keyed by lower-case extension without the dot
MIME_TYPES: Dict[str, str] = {
    'epub': 'application/epub+zip',
    'pdf': 'application/pdf',
    'mobi': 'application/x-mobipocket-ebook',
    'cbr': 'application/x-cbr',
    'cbz': 'application/x-cbz',
    'txt': 'text/plain',
}

# Default MIME type for unknown files
DEFAULT_MIME_TYPE = 'application/octet-stream'

# Methods advertised to WebDAV clients on OPTIONS
DAV_ALLOW_METHODS: List[str] = [
    "GET", "PUT", "DELETE", "PROPFIND", "OPTIONS", "MKCOL", "MOVE", "COPY",
]

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "PUT, GET, PROPFIND, OPTIONS, DELETE, MKCOL, MOVE, COPY, PROPPATCH, HEAD",
    "Access-Control-Allow-Headers": "Authorization, Depth, Content-Type, Destination, Overwrite",
}

SECURITY_HEADERS: Dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net https://cdnjs.cloudflare.com; "
        "img-src 'self' data:; "
        "font-src 'self' https://cdnjs.cloudflare.com;"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
