"""
Command-line entry points. The `onchain-upload` console script maps to
:func:`onchain_upload.cli.main.main`.
"""

from .main import app  # noqa: F401

__all__ = ["app"]
