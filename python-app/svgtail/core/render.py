"""
Render Engine.

Rasterizes a document into an opaque, display-ready pixel buffer for a given
window size and viewport.
"""

from dataclasses import dataclass
from typing import Tuple

from PIL import Image
from PySide6.QtGui import QColor, QImage, QPainter, QTransform

from .constants import BACKGROUND_RGB
from .document import SvgDocument
from .viewport import ViewportState, effective_scale

_BACKGROUND = (
    (BACKGROUND_RGB >> 16) & 0xFF,
    (BACKGROUND_RGB >> 8) & 0xFF,
    BACKGROUND_RGB & 0xFF,
)
_BACKGROUND_PIXEL = bytes((_BACKGROUND[2], _BACKGROUND[1], _BACKGROUND[0], 0))

# Lookup table turning an alpha channel into a paste mask: any coverage at
# all keeps the painted pixel.
_OPAQUE_MASK_LUT = [0] + [255] * 255


@dataclass(frozen=True)
class PixelBuffer:
    """
    A frame ready for display.

    Attributes:
        width: Width in pixels.
        height: Height in pixels.
        data: width * height packed 0x00RRGGBB values, little-endian
              (B, G, R, 0 byte order), as expected by QImage.Format_RGB32.
    """

    width: int
    height: int
    data: bytes

    def pixel(self, x: int, y: int) -> int:
        """Returns the 0x00RRGGBB value at (x, y)."""
        i = (y * self.width + x) * 4
        return int.from_bytes(self.data[i : i + 4], "little") & 0xFFFFFF


def blank_buffer(width: int, height: int) -> PixelBuffer:
    """Returns a frame filled with the background color."""
    return PixelBuffer(width, height, _BACKGROUND_PIXEL * (width * height))


def document_transform(
    doc_size: Tuple[float, float],
    window_w: int,
    window_h: int,
    viewport: ViewportState,
) -> Tuple[float, float, float]:
    """
    Computes where the document lands in the window.

    The scaled document is centered, then shifted by the viewport pan.

    Returns:
        (offset_x, offset_y, scale) for a translate-then-scale transform.
    """
    doc_w, doc_h = doc_size
    scale = effective_scale(viewport)
    pan_x, pan_y = viewport.pan
    offset_x = (window_w - doc_w * scale) / 2.0 + pan_x
    offset_y = (window_h - doc_h * scale) / 2.0 + pan_y
    return offset_x, offset_y, scale


def to_display_buffer(
    rgba: bytes, width: int, height: int, stride: int = 0
) -> PixelBuffer:
    """
    Converts a premultiplied RGBA surface into an opaque display buffer.

    Fully transparent pixels become the background color. Every other pixel
    is un-premultiplied (channel * 255 // alpha, clamped to 255, which
    Pillow's RGBa -> RGBA conversion does) and packed as 0x00RRGGBB.

    Args:
        rgba: Premultiplied pixel data in R, G, B, A byte order.
        width: Surface width in pixels.
        height: Surface height in pixels.
        stride: Bytes per row, 0 for tightly packed rows.

    Returns:
        The display buffer.
    """
    size = (width, height)
    surface = Image.frombuffer("RGBa", size, rgba, "raw", "RGBa", stride, 1)
    straight = surface.convert("RGBA")

    canvas = Image.new("RGB", size, _BACKGROUND)
    mask = straight.getchannel("A").point(_OPAQUE_MASK_LUT)
    canvas.paste(straight.convert("RGB"), (0, 0), mask)

    r, g, b = canvas.split()
    unused = Image.new("L", size, 0)
    packed = Image.merge("RGBA", (b, g, r, unused))
    return PixelBuffer(width, height, packed.tobytes())


def render(
    document: SvgDocument, window_w: int, window_h: int, viewport: ViewportState
) -> PixelBuffer:
    """
    Renders the document for the current window size and viewport.

    Args:
        document: The document to paint.
        window_w: Target width in pixels.
        window_h: Target height in pixels.
        viewport: Pan, zoom and fit scale to apply.

    Returns:
        A window_w x window_h display buffer.
    """
    surface = QImage(window_w, window_h, QImage.Format.Format_RGBA8888_Premultiplied)
    surface.fill(QColor.fromRgb(*_BACKGROUND))

    offset_x, offset_y, scale = document_transform(
        document.size(), window_w, window_h, viewport
    )
    transform = QTransform.fromTranslate(offset_x, offset_y)
    transform.scale(scale, scale)

    painter = QPainter(surface)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
    painter.setTransform(transform)
    document.paint(painter)
    painter.end()

    return to_display_buffer(
        bytes(surface.constBits()), window_w, window_h, surface.bytesPerLine()
    )
