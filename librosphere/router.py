"""
Request routing for LibroSphere

Dispatch is purely on (method, path). Methods without a route for the
path fall through to Starlette's 405 handling.
"""

import logging

from fastapi import APIRouter, Request, Response

from . import __version__
from .handlers import (
    dump_cache,
    handle_delete_file,
    handle_file_list,
    handle_get_file,
    handle_mkcol,
    handle_multiple_uploads,
    handle_put_file,
)
from .models import DAV_ALLOW_METHODS
from .ui import is_static_path, serve_static_asset

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dav"])

DUMP_CACHE_PATH = "/dumpcache"


def request_path(request: Request) -> str:
    """Percent-decoded request path, always starting with "/" """
    return request.scope.get("path") or "/"


@router.api_route("/{path:path}", methods=["OPTIONS"])
async def options(path: str):
    """Advertise the supported WebDAV subset"""
    return Response(
        status_code=204,
        headers={
            "Allow": ", ".join(DAV_ALLOW_METHODS),
            "DAV": "1, 2",
        },
    )


@router.get("/favicon.ico")
async def favicon():
    return Response(status_code=204, headers={"Cache-Control": "public, max-age=604800"})


@router.get("/healthz")
async def health_check():
    return {"ok": True, "version": __version__}


@router.get("/{path:path}")
async def get_resource(request: Request, path: str):
    """Dashboard pages, cache dump, or a stored object"""
    full_path = request_path(request)

    if is_static_path(full_path):
        return serve_static_asset(request.app.state.assets, full_path)

    if full_path == DUMP_CACHE_PATH:
        return await dump_cache(request)

    return await handle_get_file(request, full_path)


@router.put("/{path:path}")
async def put_resource(request: Request, path: str):
    return await handle_put_file(request, request_path(request))


@router.delete("/{path:path}")
async def delete_resource(request: Request, path: str):
    return await handle_delete_file(request, request_path(request))


@router.post("/upload")
async def upload_files(request: Request):
    return await handle_multiple_uploads(request)


@router.api_route("/{path:path}", methods=["PROPFIND"])
async def propfind(request: Request, path: str):
    return await handle_file_list(request, request_path(request))


@router.api_route("/{path:path}", methods=["MKCOL"])
async def mkcol(request: Request, path: str):
    return await handle_mkcol(request)


def setup_routes(app):
    """Setup request routes"""
    app.include_router(router)
    logger.info("Routes setup complete")
