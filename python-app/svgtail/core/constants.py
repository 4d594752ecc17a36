"""
Application Constants and Enumerations.

This module defines shared constant values and Enum classes used throughout
the application, specifically for change detection, viewport navigation and
rendering.
"""

from enum import Enum

from PySide6.QtCore import Qt

APP_NAME = "svgtail"
USAGE = f"Usage: {APP_NAME} <file.svg>"

# Window
INITIAL_WIDTH = 800
INITIAL_HEIGHT = 600

# Rendering
BACKGROUND_RGB = 0x333333

# File watching
DEBOUNCE_SECONDS = 0.2

# How long the idle loop blocks on the watcher channel before polling the
# window again. Not a per-frame sleep.
POLL_ACTIVE_SECONDS = 0.016  # ~60 Hz responsiveness
POLL_INACTIVE_SECONDS = 0.1

# Navigation
PAN_STEP = 10.0
ZOOM_STEP = 1.1


class ChangeKind(Enum):
    """
    Classifies a filesystem change record.

    Attributes:
        MODIFY (0): File content was written.
        ACCESS (1): File was opened or closed without writing. Never reloads.
        CREATE (2): File appeared.
        REMOVE (3): File was deleted.
        RENAME (4): File was moved away or moved onto the watched path.
        OTHER (5): Any event the watcher could not classify.
    """

    MODIFY = 0
    ACCESS = 1
    CREATE = 2
    REMOVE = 3
    RENAME = 4
    OTHER = 5


class NavAction(Enum):
    """
    Keyboard-driven viewport actions.
    """

    PAN_LEFT = 0
    PAN_DOWN = 1
    PAN_UP = 2
    PAN_RIGHT = 3
    ZOOM_IN = 4
    ZOOM_OUT = 5
    RESET = 6


# Vim-style bindings. Each action fires every loop pass while any of its keys
# is held.
KEY_BINDINGS = {
    NavAction.PAN_LEFT: (Qt.Key.Key_H,),
    NavAction.PAN_DOWN: (Qt.Key.Key_J,),
    NavAction.PAN_UP: (Qt.Key.Key_K,),
    NavAction.PAN_RIGHT: (Qt.Key.Key_L,),
    NavAction.ZOOM_IN: (Qt.Key.Key_Plus, Qt.Key.Key_Equal),
    NavAction.ZOOM_OUT: (Qt.Key.Key_Minus,),
    NavAction.RESET: (Qt.Key.Key_R,),
}

QUIT_KEY = Qt.Key.Key_Escape
