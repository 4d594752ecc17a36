"""
Viewport State.

Pan offset, zoom factor and fit-to-window bookkeeping for the preview. All
functions here are pure: they take a ViewportState and return a new one.
"""

from dataclasses import dataclass, replace
from typing import Tuple


@dataclass(frozen=True)
class ViewportState:
    """
    Placement of the document inside the window.

    Attributes:
        pan: Offset in window pixels added after centering.
        zoom: Manual magnification on top of the fit scale.
        auto_fit: Whether fit_scale tracks the window and document size.
        fit_scale: Scale that fits the whole document inside the window.
    """

    pan: Tuple[float, float] = (0.0, 0.0)
    zoom: float = 1.0
    auto_fit: bool = True
    fit_scale: float = 1.0


def effective_scale(state: ViewportState) -> float:
    """Returns the document-to-window scale actually used for painting."""
    return state.fit_scale * state.zoom


def recompute_fit_scale(
    state: ViewportState,
    window_w: int,
    window_h: int,
    doc_size: Tuple[float, float],
) -> ViewportState:
    """
    Fits the document inside a window of the given pixel size.

    Args:
        state: Current viewport.
        window_w: Window width in pixels.
        window_h: Window height in pixels.
        doc_size: Intrinsic (width, height) of the document.

    Returns:
        The viewport with fit_scale = min(window_w / doc_w, window_h / doc_h).
    """
    doc_w, doc_h = doc_size
    return replace(state, fit_scale=min(window_w / doc_w, window_h / doc_h))


def apply_pan(state: ViewportState, dx: float, dy: float) -> ViewportState:
    """Shifts the view and leaves auto-fit mode."""
    x, y = state.pan
    return replace(state, pan=(x + dx, y + dy), auto_fit=False)


def apply_zoom(state: ViewportState, factor: float) -> ViewportState:
    """Multiplies the zoom and leaves auto-fit mode."""
    return replace(state, zoom=state.zoom * factor, auto_fit=False)


def reset(state: ViewportState) -> ViewportState:
    """
    Restores the canonical framed view.

    fit_scale is kept as is; the loop recomputes it on the next dirty pass.
    """
    return replace(state, pan=(0.0, 0.0), zoom=1.0, auto_fit=True)
