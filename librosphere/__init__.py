"""
LibroSphere: minimal WebDAV-style gateway over an object store
Built with FastAPI + Uvicorn
"""

__version__ = "1.0.0"
__author__ = "librosphere"
__description__ = "Single-user e-book gateway with WebDAV listing support"
