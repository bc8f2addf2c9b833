"""
HTTP surface: archive upload, library file serving, media records.
"""
from .registry import build_route_table, create_app

__all__ = ["build_route_table", "create_app"]
