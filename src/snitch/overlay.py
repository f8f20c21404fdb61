"""Render ``[[target][label]]`` links in buffers as compact styled labels.

Each match gets an overlay showing ``[label]``. While the cursor is inside a
link the overlay steps aside so the raw syntax can be edited; leaving it
renders the label again.
"""

from __future__ import annotations

import logging
import re
import weakref
from enum import Enum

from .buffer import Overlay, TextBuffer
from .errors import PatternMismatch

logger = logging.getLogger(__name__)

LINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\[([^\]]+)\]\]")

OVERLAY_OWNER = "snitch-link"
LINK_FACE = "snitch-link"


class HoverState(str, Enum):
    RENDERED = "rendered"
    RAW = "raw"


class LinkOverlay(Overlay):
    """Overlay masking one link's raw syntax."""

    def __init__(self, start: int, end: int, target: str, display_label: str):
        super().__init__(start, end, owner=OVERLAY_OWNER)
        self.target = target
        self.display_label = display_label
        self.hover_state = HoverState.RAW


def match_link_at(text: str, position: int) -> re.Match:
    """Match the link pattern starting exactly at ``position``.

    Raises:
        PatternMismatch: If no link starts there
    """
    m = LINK_PATTERN.match(text, position)
    if m is None:
        raise PatternMismatch(f"No link at position {position}")
    return m


class OverlayEngine:
    """Keeps link overlays in sync with buffer text and cursor position."""

    def __init__(self, face: str = LINK_FACE):
        self.face = face
        self._enabled: weakref.WeakSet[TextBuffer] = weakref.WeakSet()

    # -- toggle ---------------------------------------------------------------

    def enable(self, buffer: TextBuffer) -> None:
        """Turn link rendering on for ``buffer`` and render existing links."""
        buffer.add_hook("after_change", self._on_change)
        buffer.add_hook("after_save", self._on_save)
        buffer.add_hook("cursor_moved", self._on_cursor_moved)
        buffer.add_hook("kill", self._on_kill)
        self._enabled.add(buffer)
        self.rescan(buffer)
        self._sense_cursor(buffer)

    def disable(self, buffer: TextBuffer) -> None:
        """Turn link rendering off, removing only this engine's overlays and hooks."""
        buffer.remove_hook("after_change", self._on_change)
        buffer.remove_hook("after_save", self._on_save)
        buffer.remove_hook("cursor_moved", self._on_cursor_moved)
        buffer.remove_hook("kill", self._on_kill)
        self._enabled.discard(buffer)
        removed = buffer.remove_overlays(OVERLAY_OWNER)
        logger.debug(f"Disabled link rendering in {buffer.name}; removed {removed} overlays")

    def is_enabled(self, buffer: TextBuffer) -> bool:
        return buffer in self._enabled

    # -- scanning and rendering -----------------------------------------------

    def rescan(self, buffer: TextBuffer) -> list[LinkOverlay]:
        """Recreate one rendered overlay per link in the buffer."""
        buffer.remove_overlays(OVERLAY_OWNER)
        overlays = []
        for m in LINK_PATTERN.finditer(buffer.text):
            overlay = LinkOverlay(m.start(), m.end(), target=m.group(1), display_label=m.group(2))
            buffer.add_overlay(overlay)
            self.render(overlay)
            overlays.append(overlay)
        return overlays

    def render(self, overlay: LinkOverlay) -> None:
        overlay.display = f"[{overlay.display_label}]"
        overlay.face = self.face
        overlay.hover_state = HoverState.RENDERED

    def reveal(self, overlay: LinkOverlay) -> None:
        overlay.display = None
        overlay.face = None
        overlay.hover_state = HoverState.RAW

    def overlays(self, buffer: TextBuffer) -> list[LinkOverlay]:
        return buffer.overlays(OVERLAY_OWNER)

    def rendered_text(self, buffer: TextBuffer) -> str:
        """The buffer as displayed, with rendered links shown as labels."""
        return "".join(chunk for chunk, _ in buffer.iter_display())

    # -- cursor ---------------------------------------------------------------

    def on_cursor_enter(self, buffer: TextBuffer, position: int) -> None:
        for overlay in buffer.overlays_at(position, OVERLAY_OWNER):
            self.reveal(overlay)

    def on_cursor_exit(self, buffer: TextBuffer, old_position: int) -> None:
        for overlay in buffer.overlays_at(old_position, OVERLAY_OWNER):
            self._restore(buffer, overlay)

    def _restore(self, buffer: TextBuffer, overlay: LinkOverlay) -> None:
        try:
            m = match_link_at(buffer.text, overlay.start)
        except PatternMismatch as e:
            # Edited into something else; leave the raw text showing
            logger.debug(f"{buffer.name}: {e}; overlay left unrendered")
            return
        overlay.end = m.end()
        overlay.target = m.group(1)
        overlay.display_label = m.group(2)
        self.render(overlay)

    def _sense_cursor(self, buffer: TextBuffer) -> None:
        self.on_cursor_enter(buffer, buffer.point)

    # -- hooks ----------------------------------------------------------------

    def _on_change(self, buffer: TextBuffer, start: int, end: int, old_len: int) -> None:
        self.rescan(buffer)
        self._sense_cursor(buffer)

    def _on_save(self, buffer: TextBuffer) -> None:
        self.rescan(buffer)
        self._sense_cursor(buffer)

    def _on_cursor_moved(self, buffer: TextBuffer, old: int, new: int) -> None:
        for overlay in buffer.overlays_at(old, OVERLAY_OWNER):
            if not overlay.covers(new):
                self._restore(buffer, overlay)
        self.on_cursor_enter(buffer, new)

    def _on_kill(self, buffer: TextBuffer) -> None:
        self._enabled.discard(buffer)
