"""
Preview Window.

A bare Qt widget exposing a polling interface to the render loop: the loop
asks for open/focus/key/size state, pumps events itself and pushes finished
frames, instead of reacting to Qt signals.
"""

from typing import Dict, Optional, Set, Tuple

from PySide6.QtCore import QEvent, Qt
from PySide6.QtGui import QCloseEvent, QImage, QKeyEvent, QPainter
from PySide6.QtWidgets import QApplication, QWidget

from ..core.render import PixelBuffer


class PresentationError(Exception):
    """Raised when a frame cannot be handed to the display."""


# Keys sharing one physical key on common layouts. The release may report the
# other one when Shift changed state while the key was held.
_SHIFTED_PAIRS = (
    (Qt.Key.Key_Equal, Qt.Key.Key_Plus),
    (Qt.Key.Key_Minus, Qt.Key.Key_Underscore),
)


def _key_code(key) -> int:
    return getattr(key, "value", key)


_SAME_PHYSICAL_KEY: Dict[int, Set[int]] = {
    _key_code(key): {_key_code(k) for k in pair}
    for pair in _SHIFTED_PAIRS
    for key in pair
}


class PreviewWindow(QWidget):
    """
    Resizable top-level window showing the latest rendered frame.
    """

    def __init__(
        self, title: str, width: int, height: int, parent: Optional[QWidget] = None
    ) -> None:
        """
        Initializes the window. Call show() to map it.

        Args:
            title: Window title.
            width: Initial width in logical pixels.
            height: Initial height in logical pixels.
            parent: Optional parent widget.
        """
        super().__init__(parent)
        self.setWindowTitle(title)
        self.resize(width, height)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setAttribute(Qt.WidgetAttribute.WA_OpaquePaintEvent)

        self._open = True
        self._keys_down: Set[int] = set()
        self._keys_by_scan_code: Dict[int, Set[int]] = {}
        self._frame: Optional[QImage] = None

    # --- Polling interface ---

    def is_open(self) -> bool:
        """Returns False once the user has closed the window."""
        return self._open

    def is_key_down(self, key: Qt.Key) -> bool:
        """Checks whether a key is currently held."""
        return _key_code(key) in self._keys_down

    def is_active(self) -> bool:
        """Checks whether the window has input focus."""
        return self.isActiveWindow()

    def get_size(self) -> Tuple[int, int]:
        """Returns the drawable area in device pixels."""
        ratio = self.devicePixelRatioF()
        return round(self.width() * ratio), round(self.height() * ratio)

    def pump_events(self) -> None:
        """Processes pending window events without blocking."""
        QApplication.processEvents()

    def update_with_buffer(self, buffer: PixelBuffer) -> None:
        """
        Displays a frame and processes pending events.

        Args:
            buffer: The frame, sized in device pixels.

        Raises:
            PresentationError: If the buffer is malformed.
        """
        expected = buffer.width * buffer.height * 4
        if buffer.width <= 0 or buffer.height <= 0 or len(buffer.data) != expected:
            raise PresentationError(
                f"frame of {len(buffer.data)} bytes does not match "
                f"{buffer.width}x{buffer.height}"
            )

        frame = QImage(
            buffer.data,
            buffer.width,
            buffer.height,
            buffer.width * 4,
            QImage.Format.Format_RGB32,
        ).copy()
        frame.setDevicePixelRatio(self.devicePixelRatioF())
        self._frame = frame
        self.update()
        QApplication.processEvents()

    # --- Qt event handlers ---

    def paintEvent(self, event) -> None:
        """Blits the latest frame."""
        painter = QPainter(self)
        if self._frame is not None:
            painter.drawImage(0, 0, self._frame)
        painter.end()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.isAutoRepeat():
            return
        key = _key_code(event.key())
        self._keys_down.add(key)
        scan_code = event.nativeScanCode()
        if scan_code:
            self._keys_by_scan_code.setdefault(scan_code, set()).add(key)

    def keyReleaseEvent(self, event: QKeyEvent) -> None:
        """
        Releases every key code the physical key may have produced.

        event.key() depends on the modifiers held at release time, so it can
        differ from the code recorded on press.
        """
        if event.isAutoRepeat():
            return
        key = _key_code(event.key())
        released = {key} | _SAME_PHYSICAL_KEY.get(key, set())
        scan_code = event.nativeScanCode()
        if scan_code:
            released |= self._keys_by_scan_code.pop(scan_code, set())
        self._keys_down -= released

    def changeEvent(self, event: QEvent) -> None:
        # Releases are not delivered to an inactive window.
        if event.type() == QEvent.Type.ActivationChange and not self.isActiveWindow():
            self._keys_down.clear()
            self._keys_by_scan_code.clear()
        super().changeEvent(event)

    def closeEvent(self, event: QCloseEvent) -> None:
        self._open = False
        event.accept()
