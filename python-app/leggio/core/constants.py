"""
Application Constants and Enumerations.

This module defines shared constant values and Enum classes used throughout
the reader, specifically for page layout, image state and gesture handling.
"""

from enum import Enum


class ViewMode(Enum):
    """
    Defines how many pages the reader shows at once.

    Attributes:
        SINGLE: One page per view.
        DOUBLE: An open-book spread pairing an odd page with the following
                even page.
    """

    SINGLE = "single"
    DOUBLE = "double"


class PageState(Enum):
    """
    Lifecycle of a page image inside a session cache.

    Attributes:
        UNREQUESTED: Nothing has asked for the page yet.
        LOADING: A fetch is in flight.
        LOADED: The image is available.
        FAILED: The fetch failed; the page renders as a placeholder.
    """

    UNREQUESTED = 0
    LOADING = 1
    LOADED = 2
    FAILED = 3


class InteractionMode(Enum):
    """
    Pointer interaction currently driving the viewport.

    Attributes:
        IDLE: No gesture in progress.
        PANNING: A single pointer (mouse or finger) is dragging the view.
        PINCHING: Two fingers are zooming the view.
    """

    IDLE = "idle"
    PANNING = "panning"
    PINCHING = "pinching"


class KeyCommand(Enum):
    """Reader actions reachable from the keyboard."""

    ZOOM_IN = 0
    ZOOM_OUT = 1
    RESET_ZOOM = 2
    PREV_PAGE = 3
    NEXT_PAGE = 4


MIN_ZOOM = 10.0
MAX_ZOOM = 300.0
DEFAULT_ZOOM = 100.0
ZOOM_STEP = 10.0

DEFAULT_IMAGE_PREFIX = "/epub/{book_id}/pages/page-"
DEFAULT_IMAGE_SUFFIX = "-or8.png"
