"""
API Routers for the Image Region Extractor
"""

from . import extraction, system

__all__ = ["extraction", "system"]
