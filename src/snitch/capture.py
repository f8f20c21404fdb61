"""Capture sessions: bind a capture to a source region and rewrite it into a link.

The controller follows the host capture lifecycle::

    on_session_start -> on_finalize -> on_cleanup

``capture_entry`` drives that lifecycle for one capture the way a host
capture framework would.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .buffer import Marker, TextBuffer
from .config import SnitchConfig
from .errors import NotInProject, SessionGuardMismatch, StaleMarker
from .ids import IdStrategy, next_sequence_number, resolve_id_strategy
from .ledger import LedgerWriter
from .models.capture import FinalizeResult, SessionState, SkipReason
from .models.tracker import ID_PROPERTY, NUMBER_PROPERTY
from .project import ProjectResolver
from .tracker import EntryHandle, TrackerStore

logger = logging.getLogger(__name__)

LINK_FORMAT = "(#{number}) [[id:{entry_id}][{label}]]"


def escape_label(label: str) -> str:
    """Make captured text safe as a link label.

    Text is kept verbatim unless it contains ``]``, which would end the link
    early; then square brackets become parentheses.
    """
    if "]" not in label:
        return label
    return label.replace("[", "(").replace("]", ")")


def format_link(sequence_number: int, entry_id: str, label: str) -> str:
    """Format the reference link that replaces a captured region."""
    return LINK_FORMAT.format(number=sequence_number, entry_id=entry_id, label=escape_label(label))


def rewrite_region(buffer: TextBuffer, start: int, end: int, replacement: str) -> None:
    """Replace ``[start, end)`` of ``buffer`` with ``replacement``.

    Callers resolve ``start``/``end`` from live markers right before calling.
    """
    buffer.replace(start, end, replacement)


@dataclass
class CaptureSession:
    """The one in-flight binding between a capture and a source region.

    The start marker advances and the end marker does not, so text typed at
    either edge stays outside the region.
    """

    source_buffer: weakref.ref
    region_start: Marker
    region_end: Marker
    active_template_key: str

    @property
    def buffer(self) -> Optional[TextBuffer]:
        return self.source_buffer()

    def resolve_region(self) -> tuple[TextBuffer, int, int]:
        """Current ``(buffer, start, end)`` of the captured region.

        Raises:
            StaleMarker: If the buffer is gone or the markers no longer delimit text
        """
        buffer = self.buffer
        if buffer is None or not buffer.is_live():
            raise StaleMarker("Source buffer is no longer open")
        if not (self.region_start.is_live() and self.region_end.is_live()):
            raise StaleMarker(f"Region markers in {buffer.name} are detached")
        if self.region_start.buffer is not buffer or self.region_end.buffer is not buffer:
            raise StaleMarker(f"Region markers do not belong to {buffer.name}")
        start, end = self.region_start.position, self.region_end.position
        if start > end:
            start = end
        if start == end:
            raise StaleMarker(f"Captured region in {buffer.name} is empty")
        return buffer, start, end

    def release(self) -> None:
        self.region_start.detach()
        self.region_end.detach()


class SessionController:
    """Owns the single capture-region binding and its state machine.

    States: IDLE -> PENDING -> FINALIZING -> IDLE. At most one session is
    pending at a time; the first one wins.
    """

    def __init__(
        self,
        config: SnitchConfig,
        resolver: ProjectResolver,
        store: TrackerStore,
        id_strategy: Optional[IdStrategy] = None,
        ledger_writer: Optional[LedgerWriter] = None,
    ):
        self.config = config
        self.resolver = resolver
        self.store = store
        self.id_strategy = resolve_id_strategy(id_strategy)
        self.ledger_writer = ledger_writer
        self._state = SessionState.IDLE
        self._session: Optional[CaptureSession] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    def is_capture_context_active(self, buffer: TextBuffer) -> bool:
        """Whether capture entry points should be offered for ``buffer``."""
        try:
            self.resolver.resolve_root(buffer)
        except NotInProject:
            return False
        return True

    def on_session_start(self, buffer: TextBuffer, template_key: str) -> Optional[CaptureSession]:
        """Bind the buffer's active selection to this capture.

        Returns the pending session, or ``None`` when there is nothing to bind.
        """
        if self._state is not SessionState.IDLE:
            logger.debug(f"Capture session already {self._state.value}; ignoring start for {template_key}")
            return self._session
        if not buffer.has_selection():
            logger.debug(f"No selection in {buffer.name}; capture {template_key} has no region")
            return None

        start, end = buffer.selection()
        self._session = CaptureSession(
            source_buffer=weakref.ref(buffer),
            region_start=buffer.make_marker(start, insertion_type=True),
            region_end=buffer.make_marker(end),
            active_template_key=template_key,
        )
        self._state = SessionState.PENDING
        logger.info(f"Capture session started in {buffer.name} [{start}, {end}) for {template_key}")
        self._record(
            "CAPTURE_STARTED",
            {"buffer": buffer.name, "start": start, "end": end, "template_key": template_key},
        )
        return self._session

    def on_finalize(self, entry: Optional[EntryHandle], template_key: str) -> FinalizeResult:
        """Assign id and number to the finalized entry, persist it, rewrite the region.

        Rewrite failures are absorbed; persistence I/O errors propagate. The
        session is discarded in every case.
        """
        session = self._session
        if session is not None:
            self._state = SessionState.FINALIZING
        try:
            if not self.store.is_addressable(entry):
                logger.warning(f"Finalize for {template_key} has no addressable entry; skipping")
                return FinalizeResult(template_key=template_key, skip_reason="no_entry")
            if not self.config.in_family(template_key):
                logger.info(f"Finalize for foreign template {template_key}; leaving entry untouched")
                return FinalizeResult(template_key=template_key, skip_reason="foreign_template")

            entry_id, number = self._assign_and_persist(entry)
            link_text, skip_reason = self._rewrite(session, template_key, entry_id, number)
            return FinalizeResult(
                template_key=template_key,
                entry_id=entry_id,
                sequence_number=number,
                link_inserted=link_text is not None,
                link_text=link_text,
                skip_reason=skip_reason,
            )
        finally:
            self._reset()

    def on_cleanup(self) -> None:
        """Discard any session still pending (aborted capture). Idempotent."""
        if self._session is not None:
            logger.info(f"Discarding abandoned capture session for {self._session.active_template_key}")
            self._record("CAPTURE_ABANDONED", {"template_key": self._session.active_template_key})
        self._reset()

    def _assign_and_persist(self, entry: EntryHandle) -> tuple[str, int]:
        entry_id = self.store.get_property(entry, ID_PROPERTY)
        if not entry_id:
            entry_id = self.id_strategy(entry.title)
            self.store.set_property(entry, ID_PROPERTY, entry_id)

        number = next_sequence_number(
            e for e in self.store.entries(entry.path) if e is not entry.entry
        )
        self.store.set_property(entry, NUMBER_PROPERTY, str(number))

        self.store.save(entry.path)
        logger.info(f"Filed #{number} {entry.title!r} ({entry_id}) in {entry.path.name}")
        self._record(
            "ENTRY_FINALIZED",
            {"path": str(entry.path), "title": entry.title, "sequence_number": number},
            entry_id=entry_id,
        )
        return entry_id, number

    def _rewrite(
        self,
        session: Optional[CaptureSession],
        template_key: str,
        entry_id: str,
        number: int,
    ) -> tuple[Optional[str], Optional[SkipReason]]:
        if session is None:
            return None, "no_session"

        try:
            if not (
                self.config.in_family(session.active_template_key)
                and self.config.in_family(template_key)
            ):
                raise SessionGuardMismatch(session.active_template_key, template_key)
            buffer, start, end = session.resolve_region()
        except SessionGuardMismatch as e:
            logger.info(f"Skipping link rewrite: {e}")
            self._record("LINK_SKIPPED", {"reason": "guard_mismatch"}, entry_id=entry_id)
            return None, "guard_mismatch"
        except StaleMarker as e:
            logger.info(f"Skipping link rewrite: {e}")
            self._record("LINK_SKIPPED", {"reason": "stale_marker"}, entry_id=entry_id)
            return None, "stale_marker"

        link_text = format_link(number, entry_id, buffer.substring(start, end))
        rewrite_region(buffer, start, end, link_text)
        logger.info(f"Linked {buffer.name} [{start}, {end}) to #{number}")
        self._record(
            "LINK_INSERTED",
            {"buffer": buffer.name, "start": start, "end": start + len(link_text)},
            entry_id=entry_id,
        )
        return link_text, None

    def _reset(self) -> None:
        if self._session is not None:
            self._session.release()
        self._session = None
        self._state = SessionState.IDLE

    def _record(self, event_type, payload: dict, entry_id: Optional[str] = None) -> None:
        if self.ledger_writer is not None:
            self.ledger_writer.append_event(event_type=event_type, payload=payload, entry_id=entry_id)


def capture_entry(
    controller: SessionController,
    buffer: TextBuffer,
    template_key: str,
    title: str,
    body: str = "",
) -> FinalizeResult:
    """Run one capture from ``buffer`` through the full lifecycle.

    The project is resolved before any state is created. Cleanup always runs,
    so a capture that fails while composing the entry leaves no session behind.

    Raises:
        NotInProject: If the buffer is not inside a project
        UnknownTemplate: If ``template_key`` is not configured
    """
    template = controller.config.template(template_key)
    project_root = controller.resolver.resolve_root(buffer)
    tracking_path = controller.config.tracking_path(project_root)

    try:
        controller.on_session_start(buffer, template.key)
        section = controller.store.find_or_create_heading(tracking_path, template.heading)
        entry = controller.store.add_entry(section, title, body, template_key=template.key)
        return controller.on_finalize(entry, template.key)
    finally:
        controller.on_cleanup()


def controller_for_project(
    project_root: Path,
    resolver: ProjectResolver,
    config: Optional[SnitchConfig] = None,
    id_strategy: Optional[IdStrategy] = None,
) -> SessionController:
    """Build a controller wired with the project's config, store and ledger."""
    config = config or SnitchConfig.load(project_root)
    ledger_path = config.ledger_path(project_root)
    return SessionController(
        config=config,
        resolver=resolver,
        store=TrackerStore(),
        id_strategy=id_strategy,
        ledger_writer=LedgerWriter(ledger_path) if ledger_path is not None else None,
    )
