"""
WebDAV multistatus rendering for LibroSphere
"""

import logging
from typing import Iterable
from urllib.parse import quote
from xml.etree.ElementTree import Element, SubElement, register_namespace, tostring

from .models import ObjectInfo
from .utils import format_http_date

logger = logging.getLogger(__name__)

DAV_NAMESPACE = "DAV:"
STATUS_OK = "HTTP/1.1 200 OK"

register_namespace("D", DAV_NAMESPACE)


def _dav(tag: str) -> str:
    return f"{{{DAV_NAMESPACE}}}{tag}"


def _add_response(parent: Element, href: str) -> Element:
    """Append a D:response with an open D:prop and return the prop element"""
    response = SubElement(parent, _dav("response"))
    SubElement(response, _dav("href")).text = href
    propstat = SubElement(response, _dav("propstat"))
    prop = SubElement(propstat, _dav("prop"))
    SubElement(propstat, _dav("status")).text = STATUS_OK
    return prop


def collection_display_name(path: str) -> str:
    """Display name of the listed collection ("root" for "/")"""
    if path == "/":
        return "root"
    return path.rstrip("/").rsplit("/", 1)[-1]


def render_multistatus(path: str, objects: Iterable[ObjectInfo]) -> bytes:
    """
    Render a PROPFIND listing

    The first D:response describes the requested collection, followed by
    one D:response per stored object.

    Args:
        path: Decoded request path of the collection
        objects: Objects under the collection prefix

    Returns:
        UTF-8 encoded XML document
    """
    root = Element(_dav("multistatus"))

    prop = _add_response(root, quote(path, safe="/"))
    resourcetype = SubElement(prop, _dav("resourcetype"))
    SubElement(resourcetype, _dav("collection"))
    SubElement(prop, _dav("displayname")).text = collection_display_name(path)

    count = 0
    for obj in objects:
        prop = _add_response(root, "/" + quote(obj.key, safe="/"))
        SubElement(prop, _dav("resourcetype"))
        SubElement(prop, _dav("getcontentlength")).text = str(obj.size)
        SubElement(prop, _dav("getlastmodified")).text = format_http_date(obj.uploaded)
        if obj.content_type:
            SubElement(prop, _dav("getcontenttype")).text = obj.content_type
        count += 1

    logger.debug(f"Rendered multistatus for {path} with {count} objects")
    return tostring(root, encoding="utf-8", xml_declaration=True)
