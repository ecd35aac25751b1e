"""CLI module for dzslide.

Provides commands to inspect a slide's deep-zoom pyramid, export single
tiles and print the DZI descriptor.
"""

from __future__ import annotations

from dzslide.cli.main import TileFormat, app

__all__ = ["TileFormat", "app"]
