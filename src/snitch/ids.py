"""Entry id and sequence number allocation.

Two strategies:
- Content hash (entry id): MD5 of the stripped title, 32 lowercase hex chars.
- Sequential (entry number): 1 + highest number already in the tracking document.

INVARIANT: ids are permanent. Once assigned, an entry's id never changes.
"""

from __future__ import annotations

import hashlib
from typing import Callable, Iterable, Optional

from .models.tracker import Entry, TrackingDocument, parse_sequence_number

IdStrategy = Callable[[str], str]


def normalize_title(title: str) -> str:
    """Normalize a title for hashing: surrounding whitespace is dropped."""
    return title.strip()


def compute_id(title: str) -> str:
    """Compute the stable id for an entry title."""
    return hashlib.md5(normalize_title(title).encode("utf-8")).hexdigest()


def _entries(document: TrackingDocument | Iterable[Entry]) -> Iterable[Entry]:
    if isinstance(document, TrackingDocument):
        return document.iter_entries()
    return document


def next_sequence_number(document: TrackingDocument | Iterable[Entry]) -> int:
    """Return 1 + the highest valid sequence number, or 1 when there is none.

    Entries whose number is missing or malformed do not contribute.
    """
    numbers = [e.sequence_number for e in _entries(document) if e.sequence_number is not None]
    return max(numbers, default=0) + 1


def resolve_id_strategy(strategy: Optional[IdStrategy]) -> IdStrategy:
    """Use a caller-supplied id strategy, falling back to :func:`compute_id`."""
    if strategy is None:
        return compute_id
    if not callable(strategy):
        raise TypeError(f"id strategy must be callable, got {type(strategy).__name__}")
    return strategy
