"""
Application entry point.

Resolves the document path, waits for it to exist, then runs the preview
loop until the window is closed.
"""

import sys
from typing import List, Optional

from PySide6.QtWidgets import QApplication

from .core.constants import APP_NAME, INITIAL_HEIGHT, INITIAL_WIDTH, USAGE
from .core.document import DocumentCache
from .core.notifier import ChangeNotifier, WatchError
from .session import PreviewSession
from .ui.window import PresentationError, PreviewWindow


def _fatal(message: str) -> int:
    sys.stderr.write(f"{APP_NAME}: {message}\n")
    return 1


def main(path: str) -> int:
    """
    Previews one SVG file.

    Args:
        path: The document to preview. May not exist yet.

    Returns:
        The process exit status.
    """
    app = QApplication.instance() or QApplication([APP_NAME])
    app.setApplicationName(APP_NAME)

    with ChangeNotifier(path) as notifier:
        try:
            notifier.wait_until_exists()
            notifier.start()
        except WatchError as e:
            return _fatal(str(e))

        cache = DocumentCache()
        cache.reload(notifier.path)

        window = PreviewWindow(APP_NAME, INITIAL_WIDTH, INITIAL_HEIGHT)
        window.show()

        session = PreviewSession(window, notifier, cache)
        try:
            session.run()
        except PresentationError as e:
            return _fatal(str(e))
        finally:
            window.close()

    return 0


def run(argv: Optional[List[str]] = None) -> None:
    """
    Command line entry point. Exits the process with the preview status.

    Args:
        argv: Full argument vector including the program name. Defaults to
            sys.argv.
    """
    args = sys.argv if argv is None else argv
    if len(args) != 2:
        sys.stderr.write(f"{USAGE}\n")
        sys.exit(1)

    try:
        sys.exit(main(args[1]))
    except KeyboardInterrupt:
        sys.exit(130)
