"""
Dashboard pages for LibroSphere
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi.responses import HTMLResponse

from .models import SECURITY_HEADERS

logger = logging.getLogger(__name__)

DEFAULT_ASSET_DIR = Path(__file__).parent / "static"

HTML_CONTENT_TYPE = "text/html; charset=utf-8"

# Page name -> file inside the asset directory
ASSET_FILES: Dict[str, str] = {
    "index": "index.html",
    "upload": "upload.html",
    "list": "list.html",
    "notfound": "404.html",
}

# Request path -> page name; any other /web path gets the not-found page
PAGE_ROUTES: Dict[str, str] = {
    "/": "index",
    "/web": "index",
    "/web/upload": "upload",
    "/web/list": "list",
}


class AssetStore:
    """The fixed set of HTML documents, loaded once and served verbatim"""

    def __init__(self, asset_dir: Optional[Path] = None):
        self.asset_dir = Path(asset_dir) if asset_dir else DEFAULT_ASSET_DIR
        self.pages: Dict[str, str] = {}
        self.load()

    def load(self):
        for name, filename in ASSET_FILES.items():
            asset_path = self.asset_dir / filename
            try:
                self.pages[name] = asset_path.read_text(encoding="utf-8")
            except OSError as e:
                logger.error(f"Failed to load dashboard asset {asset_path}: {e}")
                self.pages[name] = f"<h1>{name} page unavailable</h1>"
        logger.info(f"Loaded {len(self.pages)} dashboard pages from {self.asset_dir}")

    def page_for_path(self, path: str) -> str:
        return self.pages[PAGE_ROUTES.get(path, "notfound")]


def is_static_path(path: str) -> bool:
    """True for paths answered by the dashboard instead of the object store"""
    return path == "/" or path.startswith("/web")


def serve_static_asset(assets: AssetStore, path: str) -> HTMLResponse:
    """Serve a dashboard page with browser security headers"""
    headers = {
        "Cache-Control": "public, max-age=604800",
        "Access-Control-Allow-Origin": "*",
        **SECURITY_HEADERS,
    }
    return HTMLResponse(
        content=assets.page_for_path(path),
        headers=headers,
        media_type=HTML_CONTENT_TYPE,
    )
