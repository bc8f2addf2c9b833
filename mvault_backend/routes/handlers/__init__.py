"""
Route handlers.
"""
from .files import register_file_routes
from .media import register_media_routes
from .upload import register_upload_routes

__all__ = [
    "register_file_routes",
    "register_media_routes",
    "register_upload_routes",
]
