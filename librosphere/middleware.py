"""
Middleware for LibroSphere
"""

import logging
import time
from typing import Any, Callable, Dict
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .auth import is_authorized, get_user_from_request
from .config import ConfigManager
from .messages import get_message
from .models import CORS_HEADERS, Config
from .ratelimit import RateLimiter
from .utils import get_client_ip

logger = logging.getLogger(__name__)

# (method, path) pairs served without credentials; OPTIONS is always open
PUBLIC_ENDPOINTS = {
    ("GET", "/favicon.ico"),
    ("GET", "/healthz"),
}


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One ACCESS line per request, levelled by status"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        entry: Dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "ip": get_client_ip(request),
            "user": get_user_from_request(request) or "-",
            "user_agent": request.headers.get("user-agent", "-"),
        }

        try:
            response = await call_next(request)
        except Exception as e:
            entry.update(status=500, size="-", error=type(e).__name__)
            self._emit(entry, started)
            raise

        entry.update(status=response.status_code, size=response.headers.get("content-length", "-"))
        self._emit(entry, started)
        return response

    @staticmethod
    def _emit(entry: Dict[str, Any], started: float):
        entry["duration"] = round((time.perf_counter() - started) * 1000, 2)

        status = entry["status"]
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, f"ACCESS {entry}")


class CorsHeadersMiddleware(BaseHTTPMiddleware):
    """Attach the fixed CORS headers to every response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in CORS_HEADERS.items():
            if name not in response.headers:
                response.headers[name] = value
        return response


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Last-resort handler; the client never sees exception details"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(f"Unhandled {type(e).__name__} on {request.method} {request.url.path}")
            return PlainTextResponse(get_message("internal_error"), status_code=500)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client fixed-window rate limiting"""

    def __init__(self, app: FastAPI, limiter: RateLimiter):
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_id = get_client_ip(request)

        if self.limiter.check_and_consume(client_id):
            return await call_next(request)

        logger.warning(f"Rate limit exceeded: {client_id}")
        return PlainTextResponse(
            get_message("rate_limited"),
            status_code=429,
            headers={"Retry-After": str(self.limiter.window_seconds)},
        )


class AuthMiddleware(BaseHTTPMiddleware):
    """Require the configured Basic credential on non-public requests"""

    def __init__(self, app: FastAPI, config_manager: ConfigManager):
        super().__init__(app)
        self.config_manager = config_manager

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._is_public_endpoint(request):
            return await call_next(request)

        # Read per request so hot-reloaded credentials apply immediately
        auth = self.config_manager.get_config().auth
        if not is_authorized(request.headers.get("Authorization"), auth.username, auth.password):
            return PlainTextResponse(
                get_message("unauthorized"),
                status_code=401,
                headers={"WWW-Authenticate": f'Basic realm="{auth.realm}"'},
            )

        return await call_next(request)

    def _is_public_endpoint(self, request: Request) -> bool:
        if request.method == "OPTIONS":
            return True
        return (request.method, request.url.path) in PUBLIC_ENDPOINTS


def setup_middleware(app: FastAPI, config: Config, config_manager: ConfigManager, limiter: RateLimiter):
    """Install the middleware chain; the last one added sees the request first"""

    app.add_middleware(AuthMiddleware, config_manager=config_manager)

    if config.rateLimit.enabled:
        app.add_middleware(RateLimitMiddleware, limiter=limiter)

    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(CorsHeadersMiddleware)
    app.add_middleware(AccessLogMiddleware)

    logger.info(f"Middleware installed (rate limit {'on' if config.rateLimit.enabled else 'off'})")


def log_config_changes(old_config: Config, new_config: Config):
    """Report reloaded settings; only auth, realm and language apply without restart"""
    if old_config is None:
        return

    if old_config.auth.username != new_config.auth.username or old_config.auth.password != new_config.auth.password:
        logger.info("Credentials updated")

    if old_config.ui.language != new_config.ui.language:
        logger.info(f"Language changed: {old_config.ui.language} -> {new_config.ui.language}")

    if old_config.rateLimit != new_config.rateLimit:
        logger.warning("Rate limit settings changed; restart required to apply")

    if old_config.storage != new_config.storage:
        logger.warning("Storage settings changed; restart required to apply")
