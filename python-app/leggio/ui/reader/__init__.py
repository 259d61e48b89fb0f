"""
Reader Package Initialization.

This package implements the paginated page-image reader: page navigation,
lazy image loading and pan/zoom interaction. It exposes the main ReaderTab
widget for integration into the application UI.
"""

from .tab import ReaderTab

__all__ = ["ReaderTab"]
