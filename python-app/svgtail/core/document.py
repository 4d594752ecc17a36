"""
Document loading and caching.

Wraps Qt's SVG renderer as an immutable parsed document and keeps the last
successfully loaded one around, so that a broken intermediate save never
blanks the preview.
"""

import sys
from typing import Callable, Optional, Tuple

from PySide6.QtCore import QByteArray, QRectF
from PySide6.QtGui import QPainter
from PySide6.QtSvg import QSvgRenderer


class DocumentError(Exception):
    """Raised when file content cannot be parsed as a usable SVG document."""


class SvgDocument:
    """
    A parsed SVG scene with an intrinsic size in document units.

    Instances are never modified after construction; a reload produces a new
    one.
    """

    def __init__(self, renderer: QSvgRenderer, size: Tuple[float, float]) -> None:
        self._renderer = renderer
        self._size = size

    def size(self) -> Tuple[float, float]:
        """Returns the intrinsic (width, height) of the document."""
        return self._size

    def paint(self, painter: QPainter) -> None:
        """
        Paints the whole document at document coordinates.

        The caller is responsible for setting the painter transform that maps
        document units to surface pixels.
        """
        w, h = self._size
        self._renderer.render(painter, QRectF(0.0, 0.0, w, h))


def parse_document(data: bytes) -> SvgDocument:
    """
    Parses raw SVG bytes.

    Args:
        data: The complete file content.

    Returns:
        The parsed document.

    Raises:
        DocumentError: If the content is not valid SVG or has an empty size.
    """
    renderer = QSvgRenderer(QByteArray(data))
    if not renderer.isValid():
        raise DocumentError("invalid SVG content")

    default_size = renderer.defaultSize()
    if default_size.isEmpty():
        view_box = renderer.viewBoxF()
        width, height = view_box.width(), view_box.height()
    else:
        width, height = float(default_size.width()), float(default_size.height())

    if width <= 0 or height <= 0:
        raise DocumentError(f"document has empty size {width}x{height}")
    return SvgDocument(renderer, (width, height))


class DocumentCache:
    """
    Holds the last successfully parsed document.

    A failed reload (unreadable file, invalid content) leaves the cached
    document untouched; the next change event simply tries again.
    """

    def __init__(
        self, loader: Callable[[bytes], SvgDocument] = parse_document
    ) -> None:
        """
        Initializes an empty cache.

        Args:
            loader: Turns file bytes into a document, raising DocumentError.
        """
        self._loader = loader
        self.document: Optional[SvgDocument] = None

    def reload(self, path: str) -> Optional[SvgDocument]:
        """
        Reads and parses the file at path.

        Args:
            path: The watched document path.

        Returns:
            The new document on success, None on failure.
        """
        try:
            with open(path, "rb") as f:
                data = f.read()
            document = self._loader(data)
        except (OSError, DocumentError) as e:
            sys.stderr.write(f"Load error: {e}\n")
            return None

        self.document = document
        return document
