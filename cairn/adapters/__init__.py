"""
File adapters used by File and CloudinaryImage fields.
"""

from .cloudinary import CloudinaryAdapter, sign_params
from .local import LocalFileAdapter, sanitize_filename

__all__ = ["CloudinaryAdapter", "LocalFileAdapter", "sanitize_filename", "sign_params"]
