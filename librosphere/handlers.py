"""
File operation handlers for LibroSphere

Every handler converts failures into a localized plain response; storage
and cache errors are logged by exception type only so no backend detail
reaches the client.
"""

from __future__ import annotations

import logging
from typing import List
from urllib.parse import quote

from fastapi import Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.background import BackgroundTasks
from starlette.datastructures import UploadFile

from .cache import CacheInvalidator, ResponseCache, listing_url
from .messages import get_message
from .models import CachedResponse, CORS_HEADERS, UploadResult, UploadStatus
from .storage import InvalidKeyError, ObjectStore
from .utils import get_extension, get_mime_type, sanitize_path, validate_file_content
from .webdav import render_multistatus

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = "application/xml"


def _store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def _cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def _invalidator(request: Request) -> CacheInvalidator:
    return request.app.state.cache_invalidator


def _message(request: Request, key: str) -> str:
    language = request.app.state.config_manager.get_config().ui.language
    return get_message(key, language)


def _text(request: Request, key: str, status_code: int = 200, **kwargs) -> PlainTextResponse:
    return PlainTextResponse(_message(request, key), status_code=status_code, **kwargs)


def request_origin(request: Request) -> str:
    """Scheme and host of the request, used to build cache keys"""
    return f"{request.url.scheme}://{request.url.netloc}"


def content_disposition(key: str) -> str:
    return f'inline; filename="{quote(key, safe="")}"'


async def handle_get_file(request: Request, path: str) -> Response:
    """Return a stored object with a content type inferred from its key"""
    key = sanitize_path(path)
    if not key:
        return _text(request, "invalid_path", 400)

    try:
        obj = await _store(request).get(key)
    except InvalidKeyError:
        return _text(request, "invalid_path", 400)
    except Exception as e:
        logger.error(f"Get file error: {type(e).__name__}")
        return _text(request, "get_failed", 500)

    if obj is None:
        return _text(request, "not_found", 404)

    return Response(
        content=obj.data,
        media_type=get_mime_type(get_extension(key)),
        headers={"Content-Disposition": content_disposition(key)},
    )


async def handle_put_file(request: Request, path: str) -> Response:
    """Store the request body under the sanitized path"""
    key = sanitize_path(path)
    if not key:
        return _text(request, "invalid_path", 400)

    try:
        data = await request.body()
        extension = get_extension(key)
        content_type = get_mime_type(extension)

        if not validate_file_content(extension, data):
            return _text(request, "content_mismatch", 400)

        await _store(request).put(key, data, content_type)

    except InvalidKeyError:
        return _text(request, "invalid_path", 400)
    except Exception as e:
        logger.error(f"Upload error: {type(e).__name__}")
        return _text(request, "upload_failed", 500)

    tasks = BackgroundTasks()
    _invalidator(request).schedule(tasks, key)
    return _text(request, "upload_succeeded", background=tasks)


async def handle_delete_file(request: Request, path: str) -> Response:
    """Delete an object; deleting a missing key still succeeds"""
    key = sanitize_path(path)
    if not key:
        return _text(request, "invalid_path", 400)

    try:
        await _store(request).delete(key)
    except InvalidKeyError:
        return _text(request, "invalid_path", 400)
    except Exception as e:
        logger.error(f"Delete error: {type(e).__name__}")
        return _text(request, "delete_failed", 500)

    tasks = BackgroundTasks()
    _invalidator(request).schedule(tasks, key)
    return _text(request, "delete_succeeded", background=tasks)


async def _store_upload(request: Request, upload: UploadFile, tasks: BackgroundTasks) -> UploadResult:
    filename = upload.filename or ""

    key = sanitize_path(filename)
    if not key:
        return UploadResult(
            filename=filename,
            status=UploadStatus.FAILED,
            error=_message(request, "invalid_filename"),
        )

    try:
        data = await upload.read()
        extension = get_extension(key)
        content_type = get_mime_type(extension)

        if not validate_file_content(extension, data):
            return UploadResult(
                filename=filename,
                status=UploadStatus.FAILED,
                error=_message(request, "content_mismatch"),
            )

        await _store(request).put(key, data, content_type)

    except InvalidKeyError:
        return UploadResult(
            filename=filename,
            status=UploadStatus.FAILED,
            error=_message(request, "invalid_filename"),
        )
    except Exception as e:
        logger.error(f"Upload error: {type(e).__name__}")
        return UploadResult(
            filename=filename,
            status=UploadStatus.FAILED,
            error=_message(request, "storage_error"),
        )

    _invalidator(request).schedule(tasks, key)
    return UploadResult(filename=key, status=UploadStatus.SUCCESS, content_type=content_type)


async def handle_multiple_uploads(request: Request) -> Response:
    """Store every file of a multipart form; one failure never aborts the rest"""
    try:
        form = await request.form()
    except Exception as e:
        logger.error(f"Form processing error: {type(e).__name__}")
        return JSONResponse(
            {"error": _message(request, "form_failed")},
            status_code=500,
            headers=CORS_HEADERS,
        )

    tasks = BackgroundTasks()
    results: List[UploadResult] = []
    try:
        for _field, value in form.multi_items():
            if isinstance(value, UploadFile):
                results.append(await _store_upload(request, value, tasks))
    finally:
        await form.close()

    uploaded = sum(1 for r in results if r.status is UploadStatus.SUCCESS)
    logger.info(f"Multi-file upload: {uploaded}/{len(results)} stored")

    return JSONResponse(
        [r.to_dict() for r in results],
        headers=CORS_HEADERS,
        background=tasks,
    )


async def handle_file_list(request: Request, path: str) -> Response:
    """Answer PROPFIND with a multistatus listing of the path prefix"""
    prefix = path[1:] if path.startswith("/") else path

    if prefix and not sanitize_path(prefix):
        return _text(request, "invalid_dir_path", 400)

    config = request.app.state.config_manager.get_config()
    invalidator = _invalidator(request)
    cache_key = listing_url(request_origin(request), path)

    try:
        if config.cache.enabled:
            cached = await _cache(request).match(cache_key)
            if cached is not None:
                return Response(
                    content=cached.body,
                    status_code=cached.status_code,
                    headers=cached.headers,
                )

        # Taken before reading so a concurrent mutation keeps this listing out of the cache
        generation = invalidator.generation
        objects = await _store(request).list(prefix)
        body = render_multistatus(path, objects)

    except Exception as e:
        logger.error(f"File list error: {type(e).__name__}")
        return _text(request, "list_failed", 500)

    headers = {
        "Content-Type": XML_CONTENT_TYPE,
        "Cache-Control": f"public, max-age={config.cache.clientMaxAge}",
    }

    tasks = BackgroundTasks()
    if config.cache.enabled:
        entry = CachedResponse(body=body, status_code=200, headers=dict(headers))
        tasks.add_task(invalidator.store_listing, cache_key, entry, config.cache.ttl, generation)

    return Response(content=body, headers=headers, background=tasks)


async def dump_cache(request: Request) -> Response:
    """Drop the cached root listing on demand"""
    try:
        await _invalidator(request).invalidate(listing_url(request_origin(request), "/"))
    except Exception as e:
        logger.error(f"Cache dump error: {type(e).__name__}")
        return _text(request, "cache_dump_failed", 500)

    return _text(request, "cache_dumped")


async def handle_mkcol(request: Request) -> Response:
    """Collections do not exist in a flat store; accept and do nothing"""
    return _text(request, "directory_created", 201)
