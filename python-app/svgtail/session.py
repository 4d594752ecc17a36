"""
Preview Session.

The render loop: drains file change notifications, reloads the document,
tracks window size and keyboard navigation, and redraws only when something
visible changed. Between redraws it blocks on the change notifier with a
short timeout so that an idle preview costs next to no CPU.
"""

from typing import List

from .core.constants import (
    INITIAL_HEIGHT,
    INITIAL_WIDTH,
    KEY_BINDINGS,
    PAN_STEP,
    POLL_ACTIVE_SECONDS,
    POLL_INACTIVE_SECONDS,
    QUIT_KEY,
    ZOOM_STEP,
    NavAction,
)
from .core.document import DocumentCache
from .core.notifier import ChangeEvent, ChangeNotifier
from .core.render import blank_buffer, render
from .core.viewport import (
    ViewportState,
    apply_pan,
    apply_zoom,
    recompute_fit_scale,
    reset,
)
from .ui.window import PreviewWindow

_PAN_DELTAS = {
    NavAction.PAN_LEFT: (PAN_STEP, 0.0),
    NavAction.PAN_DOWN: (0.0, -PAN_STEP),
    NavAction.PAN_UP: (0.0, PAN_STEP),
    NavAction.PAN_RIGHT: (-PAN_STEP, 0.0),
}


def idle_timeout(is_active: bool) -> float:
    """
    Chooses how long an idle loop pass may block.

    A focused window polls often so held keys feel responsive; an unfocused
    one polls rarely to save CPU.
    """
    return POLL_ACTIVE_SECONDS if is_active else POLL_INACTIVE_SECONDS


class PreviewSession:
    """
    All mutable state of one preview run.

    The session is driven from the GUI thread only. The notifier's observer
    thread never touches it; events cross over through the notifier queue.
    """

    def __init__(
        self,
        window: PreviewWindow,
        notifier: ChangeNotifier,
        cache: DocumentCache,
    ) -> None:
        """
        Initializes the session. The first pass always draws a frame.

        Args:
            window: Where frames go and input comes from.
            notifier: Change notifications for the previewed file.
            cache: Holds the current document, possibly none yet.
        """
        self.window = window
        self.notifier = notifier
        self.cache = cache
        self.path = notifier.path

        self.viewport = ViewportState()
        self.dirty = True
        self.width = INITIAL_WIDTH
        self.height = INITIAL_HEIGHT
        self.buffer = blank_buffer(self.width, self.height)

        # Some window managers drop our contents while unfocused; redraw
        # once when focus comes back.
        self._was_active = window.is_active()
        # Events consumed by the idle wait, handled on the next pass.
        self._pending: List[ChangeEvent] = []

    def running(self) -> bool:
        """Checks whether the user still wants the preview."""
        return self.window.is_open() and not self.window.is_key_down(QUIT_KEY)

    def run(self) -> None:
        """Loops until the window is closed or Escape is held."""
        while self.running():
            self.step()

    def step(self) -> None:
        """Runs one pass of the loop."""
        self._check_focus()
        self._process_changes()
        self._check_resize()
        self._refit()
        self._handle_input()

        if self.dirty:
            self._present()
        else:
            self._idle()

    def _check_focus(self) -> None:
        active = self.window.is_active()
        if active and not self._was_active:
            self.dirty = True
        self._was_active = active

    def _process_changes(self) -> None:
        """Reloads at most once, however many events are queued."""
        events = self._pending + self.notifier.drain()
        self._pending = []
        if not any(e.is_reload_worthy(self.path) for e in events):
            return

        if self.cache.reload(self.path) is not None:
            self.viewport = reset(self.viewport)
            self.dirty = True

    def _check_resize(self) -> None:
        new_w, new_h = self.window.get_size()
        new_w, new_h = max(new_w, 1), max(new_h, 1)
        if (new_w, new_h) != (self.width, self.height):
            self.width, self.height = new_w, new_h
            self.buffer = blank_buffer(new_w, new_h)
            self.dirty = True

    def _refit(self) -> None:
        document = self.cache.document
        if self.dirty and self.viewport.auto_fit and document is not None:
            self.viewport = recompute_fit_scale(
                self.viewport, self.width, self.height, document.size()
            )

    def _handle_input(self) -> None:
        """Applies every held navigation key; several may combine."""
        was_reset = False
        for action, keys in KEY_BINDINGS.items():
            if not any(self.window.is_key_down(key) for key in keys):
                continue
            self.dirty = True
            if action in _PAN_DELTAS:
                dx, dy = _PAN_DELTAS[action]
                self.viewport = apply_pan(self.viewport, dx, dy)
            elif action is NavAction.ZOOM_IN:
                self.viewport = apply_zoom(self.viewport, ZOOM_STEP)
            elif action is NavAction.ZOOM_OUT:
                self.viewport = apply_zoom(self.viewport, 1.0 / ZOOM_STEP)
            elif action is NavAction.RESET:
                self.viewport = reset(self.viewport)
                was_reset = True

        # The window may have been resized while in manual mode.
        if was_reset:
            self._refit()

    def _present(self) -> None:
        document = self.cache.document
        if document is None:
            self.buffer = blank_buffer(self.width, self.height)
        else:
            self.buffer = render(document, self.width, self.height, self.viewport)
        self.window.update_with_buffer(self.buffer)
        self.dirty = False

    def _idle(self) -> None:
        self.window.pump_events()
        event = self.notifier.wait(idle_timeout(self.window.is_active()))
        if event is None:
            return
        self._pending.append(event)
        if event.is_reload_worthy(self.path):
            self.dirty = True
