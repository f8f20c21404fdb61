"""Pydantic models for Snitch."""

from .capture import FinalizeResult, SessionState, SkipReason
from .ledger import EventType, LedgerEvent
from .tracker import (
    ID_PROPERTY,
    NUMBER_PROPERTY,
    Entry,
    Section,
    TrackingDocument,
    parse_sequence_number,
)

__all__ = [
    # Capture
    "FinalizeResult",
    "SessionState",
    "SkipReason",
    # Ledger
    "EventType",
    "LedgerEvent",
    # Tracking document
    "ID_PROPERTY",
    "NUMBER_PROPERTY",
    "Entry",
    "Section",
    "TrackingDocument",
    "parse_sequence_number",
]
