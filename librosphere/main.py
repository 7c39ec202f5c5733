"""
Main application factory for LibroSphere
"""

import argparse
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .cache import CacheInvalidator, ResponseCache
from .config import ConfigManager, DEFAULT_CONFIG_PATH
from .messages import get_message
from .middleware import setup_middleware, log_config_changes
from .models import Config, LoggingConfig
from .ratelimit import RateLimiter
from .router import setup_routes
from .storage import create_object_store
from .ui import AssetStore

logger = logging.getLogger(__name__)

ENV_CONFIG = "LIBROSPHERE_CONFIG"
ENV_DEBUG = "LIBROSPHERE_DEBUG"

JSON_LOG_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","msg":"%(message)s"}'
TEXT_LOG_FORMAT = '%(asctime)s %(levelname)-7s [%(name)s] %(message)s'


def _log_handlers(log_config: LoggingConfig) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_config.file:
        log_file = Path(log_config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=log_config.max_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        ))

    return handlers


def setup_logging(config: Config):
    """Route every logger through the root logger with the configured format"""
    log_config = config.logging
    formatter = logging.Formatter(JSON_LOG_FORMAT if log_config.json else TEXT_LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_config.level.upper(), logging.INFO))
    root_logger.handlers.clear()

    for handler in _log_handlers(log_config):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)


def create_app(config_path: Optional[str] = None) -> FastAPI:
    """Create FastAPI application"""
    config_path = config_path or os.getenv(ENV_CONFIG, DEFAULT_CONFIG_PATH)
    config_manager = ConfigManager(config_path)
    config = config_manager.load_config()

    setup_logging(config)

    if not (config.auth.username and config.auth.password):
        logger.warning(
            f"Credentials are incomplete; set auth in {config_path} "
            f"or export LIBROSPHERE_USERNAME and LIBROSPHERE_PASSWORD"
        )

    debug = bool(os.getenv(ENV_DEBUG))
    app = FastAPI(
        title=config.ui.title,
        description="Single-user e-book gateway with WebDAV listing support",
        version=__version__,
        docs_url="/docs" if debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if debug else None,
    )

    # Per-application collaborators; handlers reach them through app.state
    rate_limiter = RateLimiter(
        max_requests=config.rateLimit.maxRequestsPerMinute,
        cleanup_threshold=config.rateLimit.cleanupThreshold,
    )
    response_cache = ResponseCache(default_ttl=config.cache.ttl)

    app.state.config_manager = config_manager
    app.state.rate_limiter = rate_limiter
    app.state.object_store = create_object_store(config.storage)
    app.state.response_cache = response_cache
    app.state.cache_invalidator = CacheInvalidator(response_cache)
    app.state.assets = AssetStore(Path(config.ui.assetDir) if config.ui.assetDir else None)

    setup_middleware(app, config, config_manager, rate_limiter)
    setup_routes(app)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            message = get_message("method_not_allowed", config_manager.get_config().ui.language)
        else:
            message = str(exc.detail)
        return PlainTextResponse(message, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    config_manager.add_reload_callback(log_config_changes)

    @app.on_event("startup")
    async def startup_event():
        current = config_manager.get_config()
        logger.info(
            f"LibroSphere {__version__} listening on {current.server.addr}:{current.server.port} "
            f"(storage={current.storage.backend}, tls={'on' if current.server.tls.enabled else 'off'})"
        )
        config_manager.start_watching()

    @app.on_event("shutdown")
    async def shutdown_event():
        config_manager.stop_watching()
        logger.info("LibroSphere stopped")

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="librosphere", description="LibroSphere e-book gateway")
    parser.add_argument("--config", "-c", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--host", default=None, help="Override server.addr")
    parser.add_argument("--port", type=int, default=None, help="Override server.port")
    parser.add_argument("--reload", action="store_true", help="Restart on source changes (development)")
    parser.add_argument("--debug", action="store_true", help="Expose /docs and /openapi.json")
    return parser


def main(argv: Optional[List[str]] = None):
    """Entry point of the librosphere command"""
    args = build_parser().parse_args(argv)

    if args.debug:
        os.environ[ENV_DEBUG] = "1"

    # uvicorn calls the factory without arguments, possibly in a reloader child
    os.environ[ENV_CONFIG] = args.config

    server = ConfigManager(args.config).load_config().server
    tls_files = {}
    if server.tls.enabled:
        tls_files = {"ssl_certfile": server.tls.certfile, "ssl_keyfile": server.tls.keyfile}

    uvicorn.run(
        "librosphere.main:create_app",
        factory=True,
        host=args.host or server.addr,
        port=args.port or server.port,
        reload=args.reload,
        access_log=False,  # AccessLogMiddleware writes the access log
        server_header=False,
        **tls_files,
    )


if __name__ == "__main__":
    main()
