"""Tracking document store: markdown parsing, serialization and entry access.

Document shape::

    # <project> tracker

    ## Tasks

    ### Fix race condition
    :PROPERTIES:
    :ID: 6beb45c9843b5f9361f03c8e6a97e7cb
    :SNITCH_NUM: 1
    :END:

    Body text.

Level-2 headings are sections, level-3 headings are entries. Headings inside
fenced code blocks are ordinary text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .models.tracker import Entry, Section, TrackingDocument

logger = logging.getLogger(__name__)

_CODE_FENCE = "```"
_SECTION_RE = re.compile(r"^##[ \t]+(.+?)[ \t]*$")
_ENTRY_RE = re.compile(r"^###[ \t]+(.+?)[ \t]*$")
_PROPERTY_RE = re.compile(r"^:([A-Za-z0-9_-]+):(?:[ \t]+(.*?))?[ \t]*$")
_DRAWER_START = ":PROPERTIES:"
_DRAWER_END = ":END:"
# Body lines that would parse as a section or entry heading are written with
# one extra leading space, removed again on parse.
_BODY_HEADING_RE = re.compile(r"^( *)(?=#{2,3}[ \t])", re.MULTILINE)
_ESCAPED_HEADING_RE = re.compile(r"^ ( *)(?=#{2,3}[ \t])", re.MULTILINE)


def _escape_body(body: str) -> str:
    return _BODY_HEADING_RE.sub(r" \1", body)


def _unescape_body(body: str) -> str:
    return _ESCAPED_HEADING_RE.sub(r"\1", body)


def normalize_entry_title(title: str) -> str:
    """Collapse runs of whitespace, newlines included, into single spaces.

    An entry title is a single heading line.
    """
    return " ".join(title.split())


def _property_block_end(lines: list[str], start: int) -> Optional[int]:
    """Index of the closing :END: line of a property block opened at ``start``."""
    if start >= len(lines) or lines[start].strip() != _DRAWER_START:
        return None
    for j in range(start + 1, len(lines)):
        stripped = lines[j].strip()
        if stripped == _DRAWER_END:
            return j
        if not _PROPERTY_RE.match(stripped):
            return None
    return None


def parse_tracking_document(text: str) -> TrackingDocument:
    """Parse markdown text into a TrackingDocument."""
    lines = text.splitlines()
    doc = TrackingDocument()
    section: Optional[Section] = None
    entry: Optional[Entry] = None
    pending: list[str] = []

    def flush() -> None:
        chunk = "\n".join(pending).strip("\n")
        pending.clear()
        if entry is not None:
            entry.body = _unescape_body(chunk)
        elif section is not None:
            section.preamble = chunk
        else:
            doc.preamble = chunk

    in_fence = False
    i = 0
    while i < len(lines):
        line = lines[i]
        i += 1

        if line.lstrip().startswith(_CODE_FENCE):
            in_fence = not in_fence
            pending.append(line)
            continue
        if in_fence:
            pending.append(line)
            continue

        m = _SECTION_RE.match(line)
        if m:
            flush()
            section = Section(heading=m.group(1))
            doc.sections.append(section)
            entry = None
            continue

        m = _ENTRY_RE.match(line)
        if m and section is not None:
            flush()
            entry = Entry(title=m.group(1), section=section.heading)
            section.entries.append(entry)
            end = _property_block_end(lines, i)
            if end is not None:
                for prop_line in lines[i + 1 : end]:
                    pm = _PROPERTY_RE.match(prop_line.strip())
                    entry.properties[pm.group(1).upper()] = pm.group(2) or ""
                i = end + 1
            continue

        pending.append(line)

    flush()
    return doc


def _render_entry(entry: Entry) -> str:
    lines = [f"### {entry.title}"]
    if entry.properties:
        lines.append(_DRAWER_START)
        lines.extend(f":{key}: {value}".rstrip() for key, value in entry.properties.items())
        lines.append(_DRAWER_END)
    text = "\n".join(lines)
    body = _escape_body(entry.body.strip("\n"))
    if body:
        text += "\n\n" + body
    return text


def render_tracking_document(doc: TrackingDocument) -> str:
    """Serialize a TrackingDocument back to markdown."""
    blocks: list[str] = []
    if doc.preamble.strip():
        blocks.append(doc.preamble.strip("\n"))
    for section in doc.sections:
        blocks.append(f"## {section.heading}")
        if section.preamble.strip():
            blocks.append(section.preamble.strip("\n"))
        blocks.extend(_render_entry(entry) for entry in section.entries)
    return "\n\n".join(blocks) + "\n"


@dataclass(frozen=True)
class SectionHandle:
    path: Path
    heading: str


@dataclass(frozen=True, eq=False)
class EntryHandle:
    path: Path
    entry: Entry

    @property
    def title(self) -> str:
        return self.entry.title


class TrackerStore:
    """Loads, edits and saves tracking documents.

    Documents are cached per path between load and save, the way an editor
    keeps a visited file open; edits are only written by :meth:`save`.
    """

    def __init__(self):
        self._documents: dict[Path, TrackingDocument] = {}

    def document(self, path: Path) -> TrackingDocument:
        """The cached document for ``path``, loading it on first access."""
        path = Path(path).resolve()
        doc = self._documents.get(path)
        if doc is None:
            if path.exists():
                doc = parse_tracking_document(path.read_text(encoding="utf-8"))
            else:
                doc = TrackingDocument(preamble=f"# {path.parent.name} tracker")
            self._documents[path] = doc
        return doc

    def reload(self, path: Path) -> TrackingDocument:
        """Drop any cached copy and read ``path`` again."""
        self._documents.pop(Path(path).resolve(), None)
        return self.document(path)

    def find_or_create_heading(self, path: Path, heading: str) -> SectionHandle:
        doc = self.document(path)
        if doc.section(heading) is None:
            doc.sections.append(Section(heading=heading))
            logger.debug(f"Created section {heading!r} in {path}")
        return SectionHandle(path=Path(path).resolve(), heading=heading)

    def add_entry(
        self,
        section: SectionHandle,
        title: str,
        body: str = "",
        template_key: Optional[str] = None,
    ) -> EntryHandle:
        """Append a new entry to the end of ``section``.

        The title is normalized to one line before it is stored.
        """
        target = self.document(section.path).section(section.heading)
        if target is None:
            raise KeyError(f"No section {section.heading!r} in {section.path}")
        entry = Entry(
            title=normalize_entry_title(title),
            body=body,
            section=section.heading,
            template_key=template_key,
        )
        target.entries.append(entry)
        return EntryHandle(path=section.path, entry=entry)

    def is_addressable(self, handle: Optional[EntryHandle]) -> bool:
        """Whether ``handle`` still refers to an entry of its cached document."""
        if handle is None:
            return False
        doc = self._documents.get(Path(handle.path).resolve())
        if doc is None:
            return False
        return any(e is handle.entry for e in doc.iter_entries())

    def get_property(self, handle: EntryHandle, key: str) -> Optional[str]:
        return handle.entry.properties.get(key.upper())

    def set_property(self, handle: EntryHandle, key: str, value: str) -> None:
        handle.entry.properties[key.upper()] = str(value)

    def entries(self, path: Path) -> Iterable[Entry]:
        return self.document(path).iter_entries()

    def ensure_sections(self, path: Path, headings: Iterable[str]) -> list[SectionHandle]:
        """Create any missing sections, in order."""
        return [self.find_or_create_heading(path, heading) for heading in headings]

    def save(self, path: Path) -> Path:
        """Write the cached document for ``path`` to disk."""
        path = Path(path).resolve()
        doc = self.document(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_tracking_document(doc), encoding="utf-8")
        logger.debug(f"Saved tracking document {path}")
        return path
