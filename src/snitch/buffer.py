"""In-process editor model: text buffers with live markers, hooks and overlays.

Stands in for the host editor. Positions are character offsets into the
buffer text, in the range ``0..len(text)``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

HOOK_EVENTS = ("after_change", "after_save", "cursor_moved", "kill")


class Marker:
    """A position that follows edits made to its buffer.

    Text inserted exactly at the marker's position goes after the marker,
    unless the marker advances (``insertion_type=True``), in which case the
    marker moves past the inserted text.
    A marker inside a deleted range collapses to the start of that range.
    Killing the buffer detaches the marker (``buffer`` becomes ``None``).
    """

    def __init__(self, buffer: "TextBuffer", position: int, insertion_type: bool = False):
        self.buffer: Optional[TextBuffer] = buffer
        self._position: Optional[int] = position
        self.insertion_type = insertion_type

    @property
    def position(self) -> Optional[int]:
        return self._position

    def is_live(self) -> bool:
        return self.buffer is not None and self.buffer.is_live() and self._position is not None

    def detach(self) -> None:
        if self.buffer is not None:
            self.buffer._markers.discard(self)
        self.buffer = None
        self._position = None

    def _adjust(self, start: int, end: int, inserted: int) -> None:
        # Replacement of [start, end) with `inserted` characters
        pos = self._position
        if pos is None or pos < start:
            return
        if pos == start:
            if self.insertion_type:
                self._position = start + inserted
            return
        if pos >= end:
            self._position = pos - (end - start) + inserted
        else:
            self._position = start

    def __repr__(self) -> str:
        name = self.buffer.name if self.buffer is not None else "<detached>"
        return f"Marker({name}, {self._position})"


class Overlay:
    """A visual-only annotation over ``[start, end)`` of a buffer.

    ``display`` replaces the covered text when rendered; ``None`` means the
    underlying text shows as-is. ``owner`` tags the feature that created it.
    """

    def __init__(self, start: int, end: int, owner: str):
        self.start = start
        self.end = end
        self.owner = owner
        self.display: Optional[str] = None
        self.face: Optional[str] = None

    def covers(self, position: int) -> bool:
        return self.start <= position < self.end

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.start}, {self.end}, owner={self.owner!r})"


class TextBuffer:
    """Mutable text with point, selection, markers, hooks and overlays."""

    def __init__(self, name: str, text: str = "", path: Optional[Path] = None):
        self.name = name
        self.path = path
        self._text = text
        self._point = 0
        self._selection: Optional[tuple[Marker, Marker]] = None
        self._markers: set[Marker] = set()
        self._hooks: dict[str, list[Callable]] = {event: [] for event in HOOK_EVENTS}
        self._overlays: list[Overlay] = []
        self._live = True
        self.modified = False

    @classmethod
    def from_file(cls, path: Path) -> "TextBuffer":
        """Visit a file, reading its contents into a new buffer."""
        path = Path(path)
        return cls(path.name, path.read_text(encoding="utf-8"), path=path.resolve())

    # -- text ---------------------------------------------------------------

    @property
    def text(self) -> str:
        return self._text

    def __len__(self) -> int:
        return len(self._text)

    def substring(self, start: int, end: int) -> str:
        self._check_range(start, end)
        return self._text[start:end]

    def insert(self, position: int, text: str) -> None:
        self.replace(position, position, text)

    def delete(self, start: int, end: int) -> None:
        self.replace(start, end, "")

    def replace(self, start: int, end: int, text: str) -> None:
        """Replace ``[start, end)`` with ``text`` as a single edit."""
        self._ensure_live()
        self._check_range(start, end)
        old_len = end - start
        self._text = self._text[:start] + text + self._text[end:]
        self.modified = True

        for marker in list(self._markers):
            marker._adjust(start, end, len(text))
        if self._point > start:
            self._point = start + len(text) if self._point < end else self._point - old_len + len(text)
        self._run_hooks("after_change", self, start, start + len(text), old_len)

    # -- point and selection ------------------------------------------------

    @property
    def point(self) -> int:
        return self._point

    def goto(self, position: int) -> None:
        """Move point, notifying ``cursor_moved`` hooks with (old, new)."""
        self._check_position(position)
        old = self._point
        self._point = position
        if old != position:
            self._run_hooks("cursor_moved", self, old, position)

    def select(self, start: int, end: int) -> None:
        """Activate a selection over ``[start, end)``; point moves to ``end``."""
        self._check_range(start, end)
        self.clear_selection()
        self._selection = (self.make_marker(start), self.make_marker(end))
        self.goto(end)

    def clear_selection(self) -> None:
        if self._selection is not None:
            for marker in self._selection:
                marker.detach()
        self._selection = None

    def selection(self) -> Optional[tuple[int, int]]:
        """Active selection bounds, or ``None`` when nothing is selected."""
        if self._selection is None:
            return None
        start, end = (m.position for m in self._selection)
        if start is None or end is None:
            return None
        return (min(start, end), max(start, end))

    def has_selection(self) -> bool:
        """Whether a non-empty selection is active."""
        bounds = self.selection()
        return bounds is not None and bounds[0] < bounds[1]

    # -- markers --------------------------------------------------------------

    def make_marker(self, position: int, insertion_type: bool = False) -> Marker:
        """A live marker at ``position``; see :class:`Marker` for ``insertion_type``."""
        self._ensure_live()
        self._check_position(position)
        marker = Marker(self, position, insertion_type=insertion_type)
        self._markers.add(marker)
        return marker

    # -- hooks ----------------------------------------------------------------

    def add_hook(self, event: str, callback: Callable) -> None:
        hooks = self._hooks[event]
        if callback not in hooks:
            hooks.append(callback)

    def remove_hook(self, event: str, callback: Callable) -> None:
        hooks = self._hooks[event]
        if callback in hooks:
            hooks.remove(callback)

    def hooks(self, event: str) -> list[Callable]:
        return list(self._hooks[event])

    def _run_hooks(self, event: str, *args) -> None:
        for callback in list(self._hooks[event]):
            callback(*args)

    # -- overlays -------------------------------------------------------------

    def add_overlay(self, overlay: Overlay) -> Overlay:
        self._check_range(overlay.start, overlay.end)
        self._overlays.append(overlay)
        return overlay

    def overlays(self, owner: Optional[str] = None) -> list[Overlay]:
        return [o for o in self._overlays if owner is None or o.owner == owner]

    def overlays_at(self, position: int, owner: Optional[str] = None) -> list[Overlay]:
        return [o for o in self.overlays(owner) if o.covers(position)]

    def remove_overlays(self, owner: str) -> int:
        """Remove every overlay tagged with ``owner``; returns how many."""
        kept = [o for o in self._overlays if o.owner != owner]
        removed = len(self._overlays) - len(kept)
        self._overlays = kept
        return removed

    def iter_display(self) -> Iterator[tuple[str, Optional[Overlay]]]:
        """Yield the visible text as (chunk, overlay) pieces.

        Rendered overlays contribute their ``display`` string instead of the
        text they cover; plain text yields ``None`` for the overlay.
        """
        shown = sorted((o for o in self._overlays if o.display is not None), key=lambda o: o.start)
        pos = 0
        for overlay in shown:
            if overlay.start < pos:
                continue
            if overlay.start > pos:
                yield self._text[pos:overlay.start], None
            yield overlay.display, overlay
            pos = overlay.end
        if pos < len(self._text):
            yield self._text[pos:], None

    # -- lifecycle ------------------------------------------------------------

    def is_live(self) -> bool:
        return self._live

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the buffer to its file and run ``after_save`` hooks."""
        self._ensure_live()
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ValueError(f"Buffer {self.name!r} is not visiting a file")
        target.write_text(self._text, encoding="utf-8")
        self.path = target
        self.modified = False
        logger.debug(f"Saved buffer {self.name} to {target}")
        self._run_hooks("after_save", self)
        return target

    def kill(self) -> None:
        """Close the buffer: detach markers, drop overlays and hooks."""
        if not self._live:
            return
        self._run_hooks("kill", self)
        self._live = False
        self._selection = None
        for marker in list(self._markers):
            marker.detach()
        self._overlays = []
        self._hooks = {event: [] for event in HOOK_EVENTS}

    # -- helpers --------------------------------------------------------------

    def _ensure_live(self) -> None:
        if not self._live:
            raise RuntimeError(f"Buffer {self.name!r} has been killed")

    def _check_position(self, position: int) -> None:
        if not 0 <= position <= len(self._text):
            raise ValueError(f"Position {position} outside buffer {self.name!r} (0..{len(self._text)})")

    def _check_range(self, start: int, end: int) -> None:
        self._check_position(start)
        self._check_position(end)
        if start > end:
            raise ValueError(f"Invalid range {start}..{end} in buffer {self.name!r}")

    def __repr__(self) -> str:
        return f"TextBuffer({self.name!r}, len={len(self._text)})"


class BufferRegistry:
    """Open buffers, keyed by name."""

    def __init__(self):
        self._buffers: dict[str, TextBuffer] = {}

    def open(self, path: Path) -> TextBuffer:
        """Visit ``path``, reusing an already open buffer for the same file."""
        resolved = Path(path).resolve()
        for buffer in self._buffers.values():
            if buffer.path == resolved:
                return buffer
        buffer = TextBuffer.from_file(resolved)
        return self.add(buffer)

    def add(self, buffer: TextBuffer) -> TextBuffer:
        name = buffer.name
        counter = 1
        while name in self._buffers:
            counter += 1
            name = f"{buffer.name}<{counter}>"
        buffer.name = name
        self._buffers[name] = buffer
        return buffer

    def get(self, name: str) -> Optional[TextBuffer]:
        return self._buffers.get(name)

    def close(self, name: str) -> None:
        buffer = self._buffers.pop(name, None)
        if buffer is not None:
            buffer.kill()

    def __iter__(self) -> Iterator[TextBuffer]:
        return iter(list(self._buffers.values()))

    def __len__(self) -> int:
        return len(self._buffers)
