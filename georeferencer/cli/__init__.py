"""CLI module for georeferencing tools.

Provides a unified `georef` command-line interface for fitting an image to
GPS control points and exporting the georeferenced data.
"""

from georeferencer.cli.main import app

__all__ = ["app"]
