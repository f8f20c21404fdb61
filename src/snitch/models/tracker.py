"""Pydantic models for the tracking document."""

import re
from typing import Iterator, Optional

from pydantic import BaseModel, Field

ID_PROPERTY = "ID"
NUMBER_PROPERTY = "SNITCH_NUM"

_NUMBER_RE = re.compile(r"[0-9]+")


def parse_sequence_number(value: Optional[str]) -> Optional[int]:
    """Parse a stored sequence number; anything but a positive integer is ``None``."""
    if value is None:
        return None
    value = value.strip()
    if not _NUMBER_RE.fullmatch(value):
        return None
    number = int(value)
    return number if number > 0 else None


class Entry(BaseModel):
    """One captured record filed under a section of the tracking document."""

    title: str = Field(description="Entry heading text")
    body: str = Field(default="", description="Free text below the property block")
    properties: dict[str, str] = Field(default_factory=dict, description="Property block, in order")
    section: Optional[str] = Field(default=None, description="Heading of the enclosing section")
    template_key: Optional[str] = Field(default=None, description="Capture template that created it")

    model_config = {"frozen": False}

    @property
    def id(self) -> Optional[str]:
        value = self.properties.get(ID_PROPERTY)
        return value.strip() if value and value.strip() else None

    @property
    def sequence_number(self) -> Optional[int]:
        return parse_sequence_number(self.properties.get(NUMBER_PROPERTY))


class Section(BaseModel):
    """A level-2 heading grouping entries of one capture template."""

    heading: str
    preamble: str = Field(default="", description="Text between the heading and the first entry")
    entries: list[Entry] = Field(default_factory=list)


class TrackingDocument(BaseModel):
    """The per-project tracking document."""

    preamble: str = Field(default="", description="Text before the first section")
    sections: list[Section] = Field(default_factory=list)

    def section(self, heading: str) -> Optional[Section]:
        for section in self.sections:
            if section.heading == heading:
                return section
        return None

    def iter_entries(self) -> Iterator[Entry]:
        for section in self.sections:
            yield from section.entries

    def find_entry(self, entry_id: str) -> Optional[Entry]:
        for entry in self.iter_entries():
            if entry.id == entry_id:
                return entry
        return None
